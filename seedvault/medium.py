"""
Proximity tag mediums.

A medium discovers tags, reads their NDEF records and writes new ones. The
radio itself is behind this interface; the vault only ever sees decoded text.
"""

import os
import json
import uuid
import shutil
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

from . import config
from .errors import MediumError
from .storage import set_owner_only_permissions

logger = logging.getLogger(__name__)

TNF_WELL_KNOWN = 1
RTD_TEXT = "T"
RTD_URI = "U"


@dataclass
class NdefRecord:
    """A decoded NDEF record."""
    tnf: int
    type: str
    id: Tuple[int, ...]
    payload_as_string: str

    @classmethod
    def text(cls, text: str, record_id: Tuple[int, ...] = config.TEXT_RECORD_ID) -> 'NdefRecord':
        return cls(TNF_WELL_KNOWN, RTD_TEXT, tuple(record_id), text)

    @classmethod
    def uri(cls, uri: str, record_id: Tuple[int, ...] = config.URI_RECORD_ID) -> 'NdefRecord':
        return cls(TNF_WELL_KNOWN, RTD_URI, tuple(record_id), uri)


@dataclass
class TagData:
    """A tag seen by the discovery listener."""
    id: str


@dataclass
class NdefData:
    """The NDEF message read from one tap."""
    id: str
    message: List[NdefRecord] = field(default_factory=list)


@dataclass
class ListenerOptions:
    stop_after_first_read: bool = False
    scan_hint: str = config.TAG_SCAN_HINT


TagCallback = Callable[[TagData], Awaitable[None]]
NdefCallback = Callable[[NdefData], Awaitable[None]]


class TagMedium(ABC):
    """
    Base class for tag mediums.

    Subclasses provide the capability probes and the physical write; listener
    bookkeeping and dispatch of taps to listeners live here.
    """

    def __init__(self):
        self._tag_callback: Optional[TagCallback] = None
        self._ndef_callback: Optional[NdefCallback] = None
        self._ndef_options = ListenerOptions()

    @abstractmethod
    async def check_available(self) -> bool:
        """Whether the device has a tag reader at all."""

    @abstractmethod
    async def check_enabled(self) -> bool:
        """Whether the tag reader is switched on."""

    @abstractmethod
    async def _write_records(self, records: List[NdefRecord]) -> None:
        """Wait for a tag and replace its message with ``records``."""

    @property
    def is_listening(self) -> bool:
        return self._ndef_callback is not None

    async def start_discovery_listener(self, callback: TagCallback) -> None:
        await self._ensure_enabled()
        self._tag_callback = callback
        logger.debug("Tag discovery listener set")

    async def stop_discovery_listener(self) -> None:
        self._tag_callback = None
        logger.debug("Tag discovery listener cleared")

    async def start_payload_listener(self, callback: NdefCallback,
                                     options: Optional[ListenerOptions] = None) -> None:
        await self._ensure_enabled()
        self._ndef_callback = callback
        self._ndef_options = options or ListenerOptions()
        logger.debug(f"NDEF listener set (stop_after_first_read={self._ndef_options.stop_after_first_read})")

    async def stop_payload_listener(self) -> None:
        self._ndef_callback = None
        logger.debug("NDEF listener cleared")

    async def write_text(self, text: str, record_id: Tuple[int, ...] = config.TEXT_RECORD_ID) -> None:
        await self._ensure_enabled()
        await self._write_records([NdefRecord.text(text, record_id)])

    async def write_uri(self, uri: str, record_id: Tuple[int, ...] = config.URI_RECORD_ID) -> None:
        await self._ensure_enabled()
        await self._write_records([NdefRecord.uri(uri, record_id)])

    async def erase(self) -> None:
        await self._ensure_enabled()
        await self._write_records([])

    async def _ensure_enabled(self) -> None:
        if not await self.check_available():
            raise MediumError("NFC is not available on this device")
        if not await self.check_enabled():
            raise MediumError("NFC is disabled")

    async def _dispatch(self, tag_id: str, records: List[NdefRecord]) -> None:
        """Hand one tap to whichever listeners are registered."""
        if self._tag_callback is not None:
            logger.info(f"Tag discovered: {tag_id}")
            await self._tag_callback(TagData(tag_id))

        callback = self._ndef_callback
        if callback is None:
            return
        if self._ndef_options.stop_after_first_read:
            await self.stop_payload_listener()
        await callback(NdefData(tag_id, list(records)))


@dataclass
class SimulatedTag:
    id: str
    records: List[NdefRecord] = field(default_factory=list)
    writable: bool = True
    supported: bool = True


class SimulatedTagMedium(TagMedium):
    """
    In-memory medium. Taps happen when :meth:`tap` is awaited.

    A pending write or erase is served by the next tap instead of the
    listeners, the way a real reader writes to whichever tag it sees first.
    """

    def __init__(self, available: bool = True, enabled: bool = True):
        super().__init__()
        self.available = available
        self.enabled = enabled
        self._pending_write: Optional[Tuple[List[NdefRecord], asyncio.Future]] = None

    async def check_available(self) -> bool:
        return self.available

    async def check_enabled(self) -> bool:
        return self.available and self.enabled

    @property
    def has_pending_write(self) -> bool:
        return self._pending_write is not None

    async def tap(self, tag: SimulatedTag, removed_early: bool = False) -> None:
        """Bring ``tag`` near the reader."""
        if not (self.available and self.enabled):
            logger.debug(f"Ignoring tap of {tag.id}: radio is off")
            return

        if self._pending_write is not None:
            records, future = self._pending_write
            self._pending_write = None
            if future.done():
                return
            if removed_early:
                future.set_exception(MediumError("Tag removed too early"))
            elif not tag.supported:
                future.set_exception(MediumError("Unsupported tag"))
            elif not tag.writable:
                future.set_exception(MediumError("Tag is read-only"))
            else:
                tag.records = list(records)
                future.set_result(None)
            return

        if removed_early:
            return
        await self._dispatch(tag.id, tag.records)

    async def _write_records(self, records: List[NdefRecord]) -> None:
        if self._pending_write is not None:
            raise MediumError("Another write is already waiting for a tag")
        future = asyncio.get_running_loop().create_future()
        self._pending_write = (records, future)
        try:
            await future
        finally:
            if self._pending_write is not None and self._pending_write[1] is future:
                self._pending_write = None


class FileTagMedium(TagMedium):
    """
    Treats a JSON file as a tag, e.g. on a removable drive.

    The tag is present while the file's directory exists. Reads poll the
    file; a tap is any change of its modification time or size.

    File format::

        {"id": "...", "records": [{"tnf": 1, "type": "T", "id": [1], "payload": "..."}]}
    """

    def __init__(self, tag_path: str, poll_interval: float = config.TAG_POLL_INTERVAL_SECONDS):
        super().__init__()
        self.tag_path = os.path.abspath(tag_path)
        self.poll_interval = poll_interval
        self._poll_task: Optional[asyncio.Task] = None
        self._last_seen: Optional[Tuple[int, int]] = None

    async def check_available(self) -> bool:
        return True

    async def check_enabled(self) -> bool:
        return True

    def is_present(self) -> bool:
        return os.path.isdir(os.path.dirname(self.tag_path))

    async def start_discovery_listener(self, callback: TagCallback) -> None:
        await super().start_discovery_listener(callback)
        self._ensure_polling()

    async def stop_discovery_listener(self) -> None:
        await super().stop_discovery_listener()
        await self._stop_polling_if_idle()

    async def start_payload_listener(self, callback: NdefCallback,
                                     options: Optional[ListenerOptions] = None) -> None:
        await super().start_payload_listener(callback, options)
        self._ensure_polling()

    async def stop_payload_listener(self) -> None:
        await super().stop_payload_listener()
        await self._stop_polling_if_idle()

    async def close(self) -> None:
        self._tag_callback = None
        self._ndef_callback = None
        await self._stop_polling_if_idle()

    def _ensure_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._last_seen = None
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def _stop_polling_if_idle(self) -> None:
        if self._tag_callback is not None or self._ndef_callback is not None:
            return
        task, self._poll_task = self._poll_task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self) -> None:
        me = asyncio.current_task()
        while self._poll_task is me and (self._tag_callback is not None or self._ndef_callback is not None):
            signature = self._signature()
            if signature is not None and signature != self._last_seen:
                self._last_seen = signature
                await self._poll_once()
            await asyncio.sleep(self.poll_interval)
        if self._poll_task is me:
            self._poll_task = None

    async def _poll_once(self) -> None:
        try:
            tag_id, records = self._read_tag()
        except MediumError as e:
            logger.warning(f"Could not read tag file {self.tag_path}: {e}")
            return
        try:
            await self._dispatch(tag_id, records)
        except Exception as e:
            logger.error(f"Tag listener failed for {tag_id}: {e}", exc_info=True)

    def _signature(self) -> Optional[Tuple[int, int]]:
        try:
            st = os.stat(self.tag_path)
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cannot stat tag file {self.tag_path}: {e}")
            return None
        return st.st_mtime_ns, st.st_size

    def _read_tag(self) -> Tuple[str, List[NdefRecord]]:
        try:
            with open(self.tag_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            records = [
                NdefRecord(int(r.get('tnf', TNF_WELL_KNOWN)), str(r['type']),
                           tuple(r.get('id', ())), str(r['payload']))
                for r in data.get('records', [])
            ]
            return str(data.get('id') or os.path.basename(self.tag_path)), records
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as e:
            raise MediumError(f"Unsupported tag: {e}") from e

    async def _write_records(self, records: List[NdefRecord]) -> None:
        while not self.is_present():
            await asyncio.sleep(self.poll_interval)

        tag_id = uuid.uuid4().hex
        if os.path.exists(self.tag_path):
            try:
                tag_id, _ = self._read_tag()
            except MediumError:
                logger.warning(f"Overwriting unreadable tag file {self.tag_path}")

        data = {
            'id': tag_id,
            'records': [
                {'tnf': r.tnf, 'type': r.type, 'id': list(r.id), 'payload': r.payload_as_string}
                for r in records
            ],
        }
        tmp_path = self.tag_path + '.tmp'
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f)
            shutil.move(tmp_path, self.tag_path)
            set_owner_only_permissions(self.tag_path)
        except OSError as e:
            logger.error(f"Error writing tag file {self.tag_path}: {e}", exc_info=True)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise MediumError(f"Tag removed too early: {e}") from e

        # Our own write is not a tap
        self._last_seen = self._signature()
        logger.info(f"Wrote {len(records)} records to tag {tag_id}")
