# Tests for the tag import/export protocol
# Covers: payload parsing, duplicate/confirm/discard decisions, state
#         transitions, listener-driven imports, export and utility writes

import asyncio
import json

import pytest

from seedvault.errors import PayloadFormatError, PersistenceError
from seedvault.exchange import ExchangeState, ImportOutcome, TagExchange, parse_payload, serialize_entry
from seedvault.medium import NdefRecord, SimulatedTag, SimulatedTagMedium
from seedvault.storage import MemorySettingsStore, SeedStorage, VaultEntry
from seedvault.vault import SeedVault


def seed_record(name, encrypted_seed):
    return NdefRecord.text(json.dumps({"name": name, "encryptedSeed": encrypted_seed}))


class TestParsePayload:
    def test_valid(self):
        payload = parse_payload('{"name": "tag1", "encryptedSeed": "X"}')
        assert payload.label == "tag1"
        assert payload.ciphertext == "X"

    @pytest.mark.parametrize("text", [
        "not json",
        "[]",
        '"X"',
        '{"name": "tag1"}',
        '{"encryptedSeed": "X"}',
        '{"name": "tag1", "encryptedSeed": "X", "extra": 1}',
        '{"name": 1, "encryptedSeed": "X"}',
        '{"name": "tag1", "encryptedSeed": null}',
        '{"name": "tag1", "encryptedSeed": ""}',
    ])
    def test_rejected(self, text):
        with pytest.raises(PayloadFormatError):
            parse_payload(text)

    def test_serialize_matches_wire_shape(self):
        text = serialize_entry(VaultEntry("tagA", "Y"))
        assert json.loads(text) == {"name": "tagA", "encryptedSeed": "Y"}
        assert parse_payload(text).ciphertext == "Y"


class TestHandlePayload:
    @pytest.mark.asyncio
    async def test_known_ciphertext_is_duplicate(self, vault, exchange, interaction):
        vault.import_entry("mine", "X")

        outcome = await exchange.handle_payload('{"name":"tag1","encryptedSeed":"X"}')

        assert outcome is ImportOutcome.DUPLICATE
        assert len(vault) == 1
        assert interaction.confirms == []
        assert interaction.alerts == ["The scanned tag matched with existing seed: mine"]

    @pytest.mark.asyncio
    async def test_new_ciphertext_imported_on_confirm(self, vault, exchange, interaction, settings):
        interaction.answer_confirm(True)

        outcome = await exchange.handle_payload('{"name":"tagA","encryptedSeed":"Y"}')

        assert outcome is ImportOutcome.IMPORTED
        assert vault.entries == [VaultEntry("tagA", "Y")]
        assert json.loads(settings.get_string("seeds")) == [{"name": "tagA", "encryptedSeed": "Y"}]
        assert interaction.confirms[0].ok_text == "Import"
        assert interaction.alerts == ["New seed import successful!"]
        assert exchange.status == 'Read: {"name":"tagA","encryptedSeed":"Y"}'

    @pytest.mark.asyncio
    async def test_declined_import_discarded(self, vault, exchange, interaction):
        interaction.answer_confirm(False)

        outcome = await exchange.handle_payload('{"name":"tagA","encryptedSeed":"Y"}')

        assert outcome is ImportOutcome.DISCARDED
        assert len(vault) == 0
        assert interaction.alerts == []

    @pytest.mark.asyncio
    async def test_malformed_payload(self, vault, exchange):
        with pytest.raises(PayloadFormatError):
            await exchange.handle_payload("not json")
        assert len(vault) == 0
        assert exchange.state is ExchangeState.IDLE

    @pytest.mark.asyncio
    async def test_same_tag_twice_imports_once(self, vault, exchange, interaction):
        interaction.answer_confirm(True, True)
        text = '{"name":"tagA","encryptedSeed":"Y"}'

        assert await exchange.handle_payload(text) is ImportOutcome.IMPORTED
        assert await exchange.handle_payload(text) is ImportOutcome.DUPLICATE
        assert len(vault) == 1

    @pytest.mark.asyncio
    async def test_state_transitions(self, exchange, interaction):
        seen = []
        exchange.on_state_change(seen.append)
        interaction.answer_confirm(True)

        await exchange.handle_payload('{"name":"tagA","encryptedSeed":"Y"}')

        assert seen == [
            ExchangeState.PAYLOAD_RECEIVED,
            ExchangeState.AWAITING_CONFIRMATION,
            ExchangeState.IMPORTED,
            ExchangeState.IDLE,
        ]

    @pytest.mark.asyncio
    async def test_save_failure_leaves_vault_unchanged(self, cipher, interaction, medium):
        class ReadOnlyStore(MemorySettingsStore):
            def set_string(self, key, value):
                raise PersistenceError("read-only")

        vault = SeedVault(SeedStorage(ReadOnlyStore()), cipher, interaction)
        exchange = TagExchange(vault, medium, interaction)
        interaction.answer_confirm(True)

        with pytest.raises(PersistenceError):
            await exchange.handle_payload('{"name":"tagA","encryptedSeed":"Y"}')
        assert len(vault) == 0
        assert exchange.state is ExchangeState.IDLE

    @pytest.mark.asyncio
    async def test_one_confirmation_at_a_time(self, exchange, interaction, vault):
        gate = asyncio.Event()
        open_dialogs = []
        peak = []

        async def slow_confirm(options):
            open_dialogs.append(options)
            peak.append(len(open_dialogs))
            await gate.wait()
            open_dialogs.remove(options)
            return True

        interaction.confirm = slow_confirm
        first = asyncio.create_task(exchange.handle_payload('{"name":"a","encryptedSeed":"A"}'))
        second = asyncio.create_task(exchange.handle_payload('{"name":"b","encryptedSeed":"B"}'))
        await asyncio.sleep(0.05)
        gate.set()

        assert await first is ImportOutcome.IMPORTED
        assert await second is ImportOutcome.IMPORTED
        assert max(peak) == 1
        assert len(vault) == 2


class TestListening:
    @pytest.mark.asyncio
    async def test_tap_imports_and_stops_after_first_read(self, vault, exchange, medium, interaction):
        interaction.answer_confirm(True)
        assert await exchange.start_listening()
        assert exchange.state is ExchangeState.LISTENING
        assert exchange.status == "Listening..."

        await medium.tap(SimulatedTag("04:A2", [seed_record("tagA", "Y")]))

        assert vault.entries == [VaultEntry("tagA", "Y")]
        assert not medium.is_listening
        assert exchange.state is ExchangeState.IDLE

    @pytest.mark.asyncio
    async def test_malformed_record_keeps_listening(self, vault, exchange, medium, interaction):
        interaction.answer_confirm(True)
        await exchange.start_listening(stop_after_first_read=False)

        await medium.tap(SimulatedTag("t1", [NdefRecord.text("not json")]))
        assert exchange.state is ExchangeState.LISTENING
        assert interaction.alerts[0].startswith("Unreadable tag")

        await medium.tap(SimulatedTag("t2", [seed_record("tagA", "Y")]))
        assert len(vault) == 1
        assert exchange.state is ExchangeState.LISTENING

    @pytest.mark.asyncio
    async def test_every_record_of_a_tap_is_considered(self, vault, exchange, medium, interaction):
        vault.import_entry("mine", "X")
        interaction.answer_confirm(True)
        await exchange.start_listening()

        await medium.tap(SimulatedTag("t1", [seed_record("dup", "X"), seed_record("new", "Z")]))

        assert [e.ciphertext for e in vault] == ["Z", "X"]
        assert "The scanned tag matched with existing seed: mine" in interaction.alerts

    @pytest.mark.asyncio
    async def test_stop_listening(self, exchange, medium):
        await exchange.start_listening(stop_after_first_read=False)
        await exchange.stop_listening()
        await exchange.stop_listening()

        assert not medium.is_listening
        assert exchange.state is ExchangeState.IDLE
        assert exchange.status == "Stopped listening."

    @pytest.mark.asyncio
    async def test_disabled_radio(self, vault, interaction):
        exchange = TagExchange(vault, SimulatedTagMedium(enabled=False), interaction)
        assert await exchange.start_listening() is False
        assert interaction.alerts == ["NFC is disabled"]
        assert exchange.state is ExchangeState.IDLE

    @pytest.mark.asyncio
    async def test_discovery_listener_records_tag_id(self, exchange, medium):
        assert await exchange.start_tag_listener()
        await medium.tap(SimulatedTag("04:A2:19"))
        assert exchange.last_tag_id == "04:A2:19"

        await exchange.stop_tag_listener()
        await medium.tap(SimulatedTag("05:00"))
        assert exchange.last_tag_id == "04:A2:19"


class TestCapabilityChecks:
    @pytest.mark.asyncio
    async def test_available_and_enabled(self, exchange, interaction):
        assert await exchange.check_available() is True
        assert await exchange.check_enabled() is True
        assert interaction.alerts == ["true", "true"]

    @pytest.mark.asyncio
    async def test_unavailable(self, vault, interaction):
        exchange = TagExchange(vault, SimulatedTagMedium(available=False), interaction)
        assert await exchange.check_available() is False
        assert await exchange.check_enabled() is False
        assert interaction.alerts == ["false", "false"]


class TestExport:
    @pytest.mark.asyncio
    async def test_writes_entry_to_tag(self, vault, exchange, medium, interaction, wait_until):
        entry = vault.import_entry("tagA", "Y")
        interaction.answer_confirm(True)
        tag = SimulatedTag("t1")

        task = asyncio.create_task(exchange.export_entry(entry.ciphertext))
        await wait_until(lambda: medium.has_pending_write)
        await medium.tap(tag)

        assert await task is True
        assert len(tag.records) == 1
        assert json.loads(tag.records[0].payload_as_string) == {"name": "tagA", "encryptedSeed": "Y"}
        assert interaction.confirms[0].ok_text == "Write NFC"
        assert interaction.alerts == ["NFC tag updated, wrote encrypted seed phrase!"]

    @pytest.mark.asyncio
    async def test_exported_tag_reads_back_as_duplicate(self, vault, exchange, medium, interaction, wait_until):
        entry = vault.import_entry("tagA", "Y")
        interaction.answer_confirm(True)
        tag = SimulatedTag("t1")
        task = asyncio.create_task(exchange.export_entry(entry.ciphertext))
        await wait_until(lambda: medium.has_pending_write)
        await medium.tap(tag)
        await task

        await exchange.start_listening()
        await medium.tap(tag)
        assert len(vault) == 1
        assert interaction.alerts[-1] == "The scanned tag matched with existing seed: tagA"

    @pytest.mark.asyncio
    async def test_cancelled(self, vault, exchange, medium):
        entry = vault.import_entry("tagA", "Y")
        assert await exchange.export_entry(entry.ciphertext) is False
        assert not medium.has_pending_write

    @pytest.mark.asyncio
    async def test_unknown_entry(self, exchange, interaction):
        interaction.answer_confirm(True)
        assert await exchange.export_entry("gone") is False
        assert interaction.alerts == ["This seed is no longer in the vault"]

    @pytest.mark.asyncio
    async def test_read_only_tag(self, vault, exchange, medium, interaction, wait_until):
        entry = vault.import_entry("tagA", "Y")
        interaction.answer_confirm(True)

        task = asyncio.create_task(exchange.export_entry(entry.ciphertext))
        await wait_until(lambda: medium.has_pending_write)
        await medium.tap(SimulatedTag("t1", writable=False))

        assert await task is False
        assert interaction.alerts == ["Tag write failed: Tag is read-only"]

    @pytest.mark.asyncio
    async def test_tag_removed_too_early(self, vault, exchange, medium, interaction, wait_until):
        entry = vault.import_entry("tagA", "Y")
        interaction.answer_confirm(True)

        task = asyncio.create_task(exchange.export_entry(entry.ciphertext))
        await wait_until(lambda: medium.has_pending_write)
        await medium.tap(SimulatedTag("t1"), removed_early=True)

        assert await task is False
        assert interaction.alerts == ["Tag write failed: Tag removed too early"]

    @pytest.mark.asyncio
    async def test_times_out_without_tag(self, vault, medium, interaction):
        exchange = TagExchange(vault, medium, interaction, write_timeout=0.05)
        entry = vault.import_entry("tagA", "Y")
        interaction.answer_confirm(True)

        assert await exchange.export_entry(entry.ciphertext) is False
        assert interaction.alerts == ["Tag write failed: Timed out waiting for a tag"]
        assert not medium.has_pending_write


class TestUtilityWrites:
    @pytest.mark.asyncio
    async def test_write_uri(self, exchange, medium, wait_until):
        tag = SimulatedTag("t1")
        task = asyncio.create_task(exchange.write_uri("https://example.org"))
        await wait_until(lambda: medium.has_pending_write)
        await medium.tap(tag)

        assert await task is True
        assert tag.records[0].type == "U"
        assert tag.records[0].payload_as_string == "https://example.org"
        assert exchange.status == "Wrote uri 'https://example.org'"

    @pytest.mark.asyncio
    async def test_erase(self, exchange, medium, wait_until):
        tag = SimulatedTag("t1", [seed_record("tagA", "Y")])
        task = asyncio.create_task(exchange.erase_tag())
        await wait_until(lambda: medium.has_pending_write)
        await medium.tap(tag)

        assert await task is True
        assert tag.records == []
        assert exchange.status == "Tag erased"
