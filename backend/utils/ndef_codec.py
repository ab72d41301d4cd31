"""
NDEF text-record codec for the proximity channel.

A receiving device broadcasts its address as a single NDEF Text record;
the paying device reads the message back and takes the first text record.
"""
import logging
from typing import Optional

import ndef

logger = logging.getLogger(__name__)


def encode_address_record(address: str) -> bytes:
    """Encode an address as a one-record NDEF message."""
    return b"".join(ndef.message_encoder([ndef.TextRecord(address)]))


def decode_address_record(octets: bytes) -> Optional[str]:
    """
    Decode the first Text record of an NDEF message.

    Returns:
        The record text, or None if the message is malformed or has no text record
    """
    if not octets:
        return None
    try:
        for record in ndef.message_decoder(octets):
            if isinstance(record, ndef.TextRecord):
                return record.text.strip()
    except ndef.DecodeError as e:
        logger.warning(f"[NFC] Malformed NDEF message: {e}")
        return None

    logger.warning("[NFC] No text record in NDEF message")
    return None


def parse_hex_message(ndef_hex: str) -> bytes:
    """
    Raw NDEF octets from the hex string the device app sends.

    Raises:
        ValueError: not valid hex
    """
    return bytes.fromhex(ndef_hex.strip().removeprefix("0x"))
