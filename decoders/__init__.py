"""Message decode registry for Twilight ledger messages.

Raw messages are plain dicts as returned by the LCD, discriminated by their
``@type`` URL. The registry picks a decoder by module namespace and exact
type URL; anything it cannot decode falls through to the passthrough arm.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from . import bridge, forks, volt, zkos
from .types import (
    MESSAGE_TYPES,
    MESSAGE_TYPE_NAMES,
    MODULES,
    TYPE_FIELD,
    get_module_from_type,
    passthrough,
    to_int,
)

logger = logging.getLogger(__name__)

Decoder = Callable[[Dict[str, Any]], Dict[str, Any]]

# Errors a decoder raises on a malformed message
DECODE_ERRORS = (KeyError, ValueError, TypeError, AttributeError)

class MessageRegistry:
    """Dispatch table from message type URL to decoder.

    Lookup goes module namespace first, then exact type URL. The default arm
    is mandatory and also catches any decoder that fails on its input.
    """

    def __init__(self, default: Decoder = passthrough):
        self._default = default
        self._modules: Dict[str, Dict[str, Decoder]] = {module: {} for module in MODULES}

    def register(self, msg_type: str) -> Callable[[Decoder], Decoder]:
        """Decorator registering a decoder for an exact type URL.

        Raises:
            ValueError: If the type URL is not in a known module namespace
        """
        module = get_module_from_type(msg_type)
        if module is None:
            raise ValueError(f"Unknown module namespace in message type {msg_type}")

        def decorator(func: Decoder) -> Decoder:
            self._modules[module][msg_type] = func
            return func

        return decorator

    def register_module(self, module: str, decoders: Dict[str, Decoder]) -> None:
        """Register every decoder of a module mapping."""
        for msg_type, func in decoders.items():
            if get_module_from_type(msg_type) != module:
                raise ValueError(f"Message type {msg_type} does not belong to module {module}")
            self._modules[module][msg_type] = func

    def lookup(self, msg_type: str) -> Optional[Decoder]:
        """Return the registered decoder for a type URL, or None."""
        module = get_module_from_type(msg_type)
        if module is None:
            return None
        return self._modules[module].get(msg_type)

    def decode(self, msg: Any) -> Dict[str, Any]:
        """Decode a raw message's payload, never raising on bad input."""
        if not isinstance(msg, dict):
            logger.warning(f"Message is not an object, storing it raw: {msg!r}")
            return {'raw': msg}

        msg_type = get_message_type(msg)
        decoder = self.lookup(msg_type)
        if decoder is None:
            return self._default(msg)

        try:
            return decoder(msg)
        except DECODE_ERRORS as e:
            logger.warning(f"Failed to decode {msg_type}, storing raw fields: {e!r}")
            return self._default(msg)

    def __contains__(self, msg_type: str) -> bool:
        return self.lookup(msg_type) is not None

    def __len__(self) -> int:
        return sum(len(decoders) for decoders in self._modules.values())


def get_message_type(msg: Any) -> str:
    """Return the @type of a raw message, or '' when absent or not a string."""
    msg_type = msg.get(TYPE_FIELD) if isinstance(msg, dict) else None
    return msg_type if isinstance(msg_type, str) else ''


registry = MessageRegistry()
registry.register_module('bridge', bridge.DECODERS)
registry.register_module('forks', forks.DECODERS)
registry.register_module('volt', volt.DECODERS)
registry.register_module('zkos', zkos.DECODERS)


def get_message_type_name(msg_type: str) -> str:
    """Return the constant name of a type URL, or its last dotted segment."""
    if msg_type in MESSAGE_TYPE_NAMES:
        return MESSAGE_TYPE_NAMES[msg_type]
    return msg_type.split('.')[-1] or 'Unknown'


def decode_message(msg: Any) -> Dict[str, Any]:
    """Decode a raw ledger message.

    Args:
        msg: Raw message dict carrying an ``@type`` field. A missing or
            non-string type and a non-dict message decode through the
            default arm.

    Returns:
        Dict with ``type``, ``type_name``, ``module`` and decoded ``data``
    """
    msg_type = get_message_type(msg)
    return {
        'type': msg_type,
        'type_name': get_message_type_name(msg_type),
        'module': get_module_from_type(msg_type),
        'data': registry.decode(msg),
    }


def format_message_type(msg_type: str) -> str:
    """Human readable label: '/x.y.MsgConfirmBtcDeposit' -> 'Confirm Btc Deposit'."""
    name = msg_type.split('.')[-1]
    if name.startswith('Msg'):
        name = name[3:]

    words = []
    for char in name:
        if char.isupper() and words:
            words.append(' ')
        words.append(char)
    return ''.join(words)


def get_all_message_types() -> List[Dict[str, Any]]:
    """List every known message type with its module and label."""
    return [
        {
            'type': msg_type,
            'name': name,
            'module': get_module_from_type(msg_type),
            'label': format_message_type(msg_type),
        }
        for name, msg_type in MESSAGE_TYPES.items()
    ]


def is_twilight_message(msg_type: str) -> bool:
    return msg_type.startswith('/twilightproject.nyks.')


def serialize_decoded_data(value: Any) -> Any:
    """Make decoded data JSON safe.

    Integers become decimal strings so wide amounts survive JSON consumers
    that parse numbers as doubles. Datetimes become ISO-8601 strings.
    Booleans are left alone.
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: serialize_decoded_data(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_decoded_data(item) for item in value]
    return value


__all__ = [
    'MessageRegistry',
    'registry',
    'decode_message',
    'get_message_type',
    'get_message_type_name',
    'format_message_type',
    'get_all_message_types',
    'is_twilight_message',
    'serialize_decoded_data',
    'get_module_from_type',
    'passthrough',
    'to_int',
    'MESSAGE_TYPES',
    'MESSAGE_TYPE_NAMES',
]
