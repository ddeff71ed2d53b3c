"""Unit tests for riskgate.utils.ulid: request ids and payment ids."""

from __future__ import annotations

import re
import threading
import time

from riskgate.utils.ulid import PAYMENT_ID_PREFIX, generate_payment_id, generate_ulid

# ─── ULID format constants ─────────────────────────────────────────────────────

# Crockford Base32 charset: 0-9 and A-Z, excluding I, L, O, U
ULID_CHARSET = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")
ULID_LENGTH = 26


# ─── Basic format tests ────────────────────────────────────────────────────────


def test_generate_ulid_format() -> None:
    result = generate_ulid()
    assert isinstance(result, str)
    assert len(result) == ULID_LENGTH
    assert ULID_CHARSET.match(result), f"ULID {result!r} contains invalid characters"


def test_generate_ulid_unique_1000() -> None:
    ulids = [generate_ulid() for _ in range(1000)]
    assert len(set(ulids)) == 1000


def test_generate_ulid_lexicographic_order() -> None:
    """The timestamp prefix makes later ids sort after earlier ones."""
    first_batch = [generate_ulid() for _ in range(10)]
    time.sleep(0.002)
    second_batch = [generate_ulid() for _ in range(10)]
    assert all(b > a for a in first_batch for b in second_batch)


def test_generate_ulid_thread_safe() -> None:
    results: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        ulids = [generate_ulid() for _ in range(50)]
        with lock:
            results.extend(ulids)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(results)) == 500


# ─── Payment ids ───────────────────────────────────────────────────────────────


def test_payment_id_has_prefix_and_ulid_body() -> None:
    payment_id = generate_payment_id()
    assert payment_id.startswith(PAYMENT_ID_PREFIX)
    assert ULID_CHARSET.match(payment_id[len(PAYMENT_ID_PREFIX):])


def test_payment_ids_never_repeat() -> None:
    ids = [generate_payment_id() for _ in range(500)]
    assert len(set(ids)) == 500


def test_payment_id_valid_as_http_header_value() -> None:
    """Clients echo the id back in X-Payment-Id without any encoding."""
    payment_id = generate_payment_id()
    assert all(0x20 <= ord(c) <= 0x7E for c in payment_id)
    assert not set("\r\n\x00:") & set(payment_id)
