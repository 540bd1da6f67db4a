"""
StealthChat - Scanner Tests
=============================
Unit tests for announcement scanning and the long-lived watcher.
"""

import threading

import pytest

from stealth_chat.config import override_settings
from stealth_chat.crypto.curve import random_scalar, scalar_base_multiply, derive_address
from stealth_chat.errors import InvalidScalarError, InvalidPointError
from stealth_chat.registry.channel import Announcement
from stealth_chat.stealth.generation import generate_one_time_stealth_address
from stealth_chat.stealth.scanner import (
    AnnouncementScanner,
    AnnouncementWatcher,
    WatcherState,
    check_view_tag,
    is_stealth_address_for_user,
    watch_announcements_for_user,
)


def make_announcement(keys, caller=None) -> Announcement:
    """Announcement valido per il destinatario di keys"""
    result = generate_one_time_stealth_address(keys.meta_address())
    return Announcement(
        stealth_address=result.stealth_address,
        ephemeral_public_key=result.ephemeral_public_key,
        view_tag=result.view_tag,
        caller=caller,
    )


def random_address() -> str:
    return derive_address(scalar_base_multiply(random_scalar()))


class TestIsStealthAddressForUser:
    """Test is_stealth_address_for_user"""

    def test_owner_detects(self, bob_keys):
        ann = make_announcement(bob_keys)

        assert is_stealth_address_for_user(
            ann.stealth_address, ann.ephemeral_public_key, ann.view_tag,
            bob_keys.viewing.private_key, bob_keys.spending.public_key,
        )

    def test_non_owner_rejects(self, bob_keys, carol_keys):
        ann = make_announcement(bob_keys)

        assert not is_stealth_address_for_user(
            ann.stealth_address, ann.ephemeral_public_key, ann.view_tag,
            carol_keys.viewing.private_key, carol_keys.spending.public_key,
        )

    def test_false_positive_view_tag(self, bob_keys):
        """View tag corretto, indirizzo diverso: False senza errori"""
        ann = make_announcement(bob_keys)

        assert check_view_tag(bob_keys.viewing.private_key, ann.ephemeral_public_key, ann.view_tag)
        assert not is_stealth_address_for_user(
            random_address(), ann.ephemeral_public_key, ann.view_tag,
            bob_keys.viewing.private_key, bob_keys.spending.public_key,
        )

    def test_wrong_view_tag(self, bob_keys):
        ann = make_announcement(bob_keys)

        assert not is_stealth_address_for_user(
            ann.stealth_address, ann.ephemeral_public_key, (ann.view_tag + 1) % 256,
            bob_keys.viewing.private_key, bob_keys.spending.public_key,
        )

    def test_lowercase_address_matches(self, bob_keys):
        ann = make_announcement(bob_keys)

        assert is_stealth_address_for_user(
            ann.stealth_address.lower(), ann.ephemeral_public_key, ann.view_tag,
            bob_keys.viewing.private_key, bob_keys.spending.public_key,
        )

    def test_invalid_ephemeral_returns_false(self, bob_keys):
        assert not is_stealth_address_for_user(
            random_address(), "0x02" + "ff" * 32, 0,
            bob_keys.viewing.private_key, bob_keys.spending.public_key,
        )
        assert not check_view_tag(bob_keys.viewing.private_key, "0x1234", 0)

    def test_invalid_recipient_keys_raise(self, bob_keys):
        ann = make_announcement(bob_keys)

        with pytest.raises(InvalidScalarError):
            is_stealth_address_for_user(
                ann.stealth_address, ann.ephemeral_public_key, ann.view_tag,
                0, bob_keys.spending.public_key,
            )
        with pytest.raises(InvalidPointError):
            is_stealth_address_for_user(
                ann.stealth_address, ann.ephemeral_public_key, ann.view_tag,
                bob_keys.viewing.private_key, b"\x02" + b"\xff" * 32,
            )


class TestAnnouncementScanner:
    """Test AnnouncementScanner"""

    def test_scan_mixed_batch(self, bob_keys, carol_keys):
        mine = [make_announcement(bob_keys) for _ in range(3)]
        others = [make_announcement(carol_keys) for _ in range(5)]
        batch = [others[0], mine[0], others[1], others[2], mine[1], others[3], mine[2], others[4]]

        scanner = AnnouncementScanner(bob_keys.viewing.private_key, bob_keys.spending.public_key)
        found = scanner.scan(batch)

        assert found == mine
        assert scanner.stats.scanned == 8
        assert scanner.stats.matches == 3

    def test_scan_records(self, bob_keys):
        ann = make_announcement(bob_keys)
        scanner = AnnouncementScanner(bob_keys.viewing.private_key, bob_keys.spending.public_key)

        assert scanner.scan([ann.to_record()]) == [ann]

    def test_malformed_records_skipped(self, bob_keys):
        ann = make_announcement(bob_keys)
        bad_tag = {**ann.to_record(), "viewTag": 999}
        bad_point = {**ann.to_record(), "ephemeralPublicKey": "0x02" + "ff" * 32}

        scanner = AnnouncementScanner(bob_keys.viewing.private_key, bob_keys.spending.public_key)
        found = scanner.scan([bad_tag, "garbage", bad_point, ann.to_record()])

        assert found == [ann]
        assert scanner.stats.rejected == 3
        assert scanner.stats.scanned == 1

    def test_false_positive_counted(self, bob_keys):
        ann = make_announcement(bob_keys)
        spoofed = Announcement(
            stealth_address=random_address(),
            ephemeral_public_key=ann.ephemeral_public_key,
            view_tag=ann.view_tag,
        )

        scanner = AnnouncementScanner(bob_keys.viewing.private_key, bob_keys.spending.public_key)

        assert scanner.scan([spoofed]) == []
        assert scanner.stats.view_tag_matches == 1
        assert scanner.stats.false_positives == 1

    @pytest.mark.slow
    def test_view_tag_soundness_100k(self, alice_keys, bob_keys):
        """
        100.000 announcement altrui: ~1/256 supera il view tag,
        nessuno supera il full check.
        """
        meta = bob_keys.meta_address()
        scanner = AnnouncementScanner(alice_keys.viewing.private_key, alice_keys.spending.public_key)

        for _ in range(100_000):
            result = generate_one_time_stealth_address(meta)
            scanner.check(Announcement(
                stealth_address=result.stealth_address,
                ephemeral_public_key=result.ephemeral_public_key,
                view_tag=result.view_tag,
            ))

        assert scanner.stats.scanned == 100_000
        assert 300 <= scanner.stats.view_tag_matches <= 490
        assert scanner.stats.matches == 0


class TestAnnouncementWatcher:
    """Test watcher long-lived"""

    def test_bob_writes_to_alice_carol_sees_nothing(
        self, client, channel, bob_signer, alice_keys, carol_keys, test_config
    ):
        """Bob scrive ad Alice: Alice riceve addr1, Carol non lo vede mai"""
        alice_received = []
        carol_received = []

        alice_watcher = watch_announcements_for_user(
            client, alice_keys.viewing.private_key, alice_keys.spending.public_key,
            alice_received.extend, settings=test_config,
        )
        carol_watcher = watch_announcements_for_user(
            client, carol_keys.viewing.private_key, carol_keys.spending.public_key,
            carol_received.extend, settings=test_config,
        )

        addr1 = generate_one_time_stealth_address(alice_keys.meta_address())
        client.announce_stealth_message(
            bob_signer, addr1.stealth_address, addr1.ephemeral_public_key, addr1.view_tag
        )

        assert [a.stealth_address for a in alice_received] == [addr1.stealth_address]
        assert alice_received[0].caller == bob_signer.address
        assert carol_received == []
        assert carol_watcher.stats.scanned == 1
        assert carol_watcher.stats.matches == 0

        alice_watcher.unsubscribe()
        carol_watcher.unsubscribe()
        assert channel.subscriber_count == 0

    def test_end_to_end_background(self, client, alice_signer, bob_keys, carol_keys, background_config):
        received = []
        watcher = watch_announcements_for_user(
            client, bob_keys.viewing.private_key, bob_keys.spending.public_key,
            received.extend, settings=background_config,
        )

        try:
            assert watcher.background
            expected = []
            for keys in (bob_keys, carol_keys, bob_keys):
                result = generate_one_time_stealth_address(keys.meta_address())
                client.announce_stealth_message(
                    alice_signer, result.stealth_address, result.ephemeral_public_key, result.view_tag
                )
                if keys is bob_keys:
                    expected.append(result.stealth_address)

            assert watcher.wait_until_idle(timeout=10)
            assert [a.stealth_address for a in received] == expected
        finally:
            watcher.unsubscribe()

    def test_state_transitions(self, channel, bob_keys, carol_keys):
        scanner = AnnouncementScanner(bob_keys.viewing.private_key, bob_keys.spending.public_key)
        watcher = AnnouncementWatcher(channel, scanner, lambda found: None, background=False)

        assert watcher.state is WatcherState.IDLE
        assert not watcher.is_active

        watcher.start()
        assert watcher.state is WatcherState.IDLE
        assert watcher.is_active

        channel.publish(make_announcement(carol_keys).to_record())
        assert watcher.state is WatcherState.SCANNING

        watcher.unsubscribe()
        assert watcher.state is WatcherState.STOPPED
        assert not watcher.is_active

    def test_callback_only_with_matches(self, channel, bob_keys, carol_keys, test_config):
        calls = []
        watcher = watch_announcements_for_user(
            channel, bob_keys.viewing.private_key, bob_keys.spending.public_key,
            calls.append, settings=test_config,
        )

        channel.publish_batch([make_announcement(carol_keys).to_record() for _ in range(4)])
        assert calls == []
        assert watcher.stats.scanned == 4

        channel.publish_batch([
            make_announcement(carol_keys).to_record(),
            make_announcement(bob_keys).to_record(),
        ])
        assert len(calls) == 1
        assert len(calls[0]) == 1

        watcher.unsubscribe()

    def test_no_delivery_after_unsubscribe(self, channel, bob_keys, test_config):
        received = []
        watcher = watch_announcements_for_user(
            channel, bob_keys.viewing.private_key, bob_keys.spending.public_key,
            received.extend, settings=test_config,
        )

        channel.publish(make_announcement(bob_keys).to_record())
        watcher.unsubscribe()
        channel.publish(make_announcement(bob_keys).to_record())

        assert len(received) == 1
        assert len(channel) == 2

        # idempotente
        watcher.unsubscribe()
        assert watcher.state is WatcherState.STOPPED

    def test_only_new_announcements(self, channel, bob_keys, test_config):
        """Announcement pubblicati prima della sottoscrizione non vengono consegnati"""
        channel.publish(make_announcement(bob_keys).to_record())

        received = []
        watcher = watch_announcements_for_user(
            channel, bob_keys.viewing.private_key, bob_keys.spending.public_key,
            received.extend, settings=test_config,
        )
        assert received == []

        fresh = make_announcement(bob_keys)
        channel.publish(fresh.to_record())
        assert received == [fresh]

        watcher.unsubscribe()

    def test_order_preserved(self, channel, bob_keys, background_config):
        received = []
        watcher = watch_announcements_for_user(
            channel, bob_keys.viewing.private_key, bob_keys.spending.public_key,
            received.extend, settings=background_config,
        )

        try:
            announcements = [make_announcement(bob_keys) for _ in range(20)]
            for ann in announcements:
                channel.publish(ann.to_record())

            assert watcher.wait_until_idle(timeout=10)
            assert received == announcements
        finally:
            watcher.unsubscribe()

    def test_callback_error_does_not_stop_worker(self, channel, bob_keys, background_config):
        calls = []

        def flaky(found):
            calls.append(found)
            if len(calls) == 1:
                raise RuntimeError("UI update failed")

        watcher = watch_announcements_for_user(
            channel, bob_keys.viewing.private_key, bob_keys.spending.public_key,
            flaky, settings=background_config,
        )

        try:
            channel.publish(make_announcement(bob_keys).to_record())
            channel.publish(make_announcement(bob_keys).to_record())

            assert watcher.wait_until_idle(timeout=10)
            assert len(calls) == 2
            assert watcher.state is WatcherState.SCANNING
        finally:
            watcher.unsubscribe()

    def test_sync_callback_error_does_not_block_other_watchers(
        self, client, channel, bob_signer, alice_keys, carol_keys, test_config
    ):
        """Callback che solleva in sync: gli altri watcher ricevono comunque il batch"""
        def broken(found):
            raise RuntimeError("UI update failed")

        carol_received = []
        alice_watcher = watch_announcements_for_user(
            client, alice_keys.viewing.private_key, alice_keys.spending.public_key,
            broken, settings=test_config,
        )
        carol_watcher = watch_announcements_for_user(
            client, carol_keys.viewing.private_key, carol_keys.spending.public_key,
            carol_received.extend, settings=test_config,
        )

        try:
            to_alice = make_announcement(alice_keys)
            to_carol = make_announcement(carol_keys)
            channel.publish_batch([to_alice.to_record(), to_carol.to_record()])

            assert carol_received == [to_carol]
            assert alice_watcher.stats.matches == 1
            assert alice_watcher.state is WatcherState.SCANNING

            addr = generate_one_time_stealth_address(alice_keys.meta_address())
            client.announce_stealth_message(
                bob_signer, addr.stealth_address, addr.ephemeral_public_key, addr.view_tag
            )
            assert len(channel) == 3
            assert alice_watcher.stats.matches == 2
        finally:
            alice_watcher.unsubscribe()
            carol_watcher.unsubscribe()

    def test_bounded_queue_callback_can_announce(
        self, client, channel, alice_signer, bob_signer, alice_keys, carol_keys
    ):
        """Con coda limitata il callback può pubblicare senza bloccare il publisher"""
        settings = override_settings(scanner_background=True, scanner_queue_size=1, enable_console=False)
        received = []

        def reply(found):
            received.extend(found)
            addr = generate_one_time_stealth_address(carol_keys.meta_address())
            client.announce_stealth_message(
                alice_signer, addr.stealth_address, addr.ephemeral_public_key, addr.view_tag
            )

        watcher = watch_announcements_for_user(
            client, alice_keys.viewing.private_key, alice_keys.spending.public_key,
            reply, settings=settings,
        )

        def publish():
            for _ in range(3):
                addr = generate_one_time_stealth_address(alice_keys.meta_address())
                client.announce_stealth_message(
                    bob_signer, addr.stealth_address, addr.ephemeral_public_key, addr.view_tag
                )

        try:
            publisher = threading.Thread(target=publish, daemon=True)
            publisher.start()
            publisher.join(timeout=10)

            assert not publisher.is_alive()
            assert watcher.wait_until_idle(timeout=10)
            assert len(received) == 3
            assert len(channel) == 6
        finally:
            watcher.unsubscribe()

    def test_context_manager(self, channel, bob_keys):
        received = []
        scanner = AnnouncementScanner(bob_keys.viewing.private_key, bob_keys.spending.public_key)

        with AnnouncementWatcher(channel, scanner, received.extend, background=False) as watcher:
            channel.publish(make_announcement(bob_keys).to_record())

        assert len(received) == 1
        assert watcher.state is WatcherState.STOPPED
        assert channel.subscriber_count == 0
