"""
Exception hierarchy for armlink
Kinematic infeasibility is not an error: IK returns None instead
"""


class ArmlinkError(Exception):
    """Base class for all armlink errors"""


class InvalidInputError(ArmlinkError, ValueError):
    """Rejected input: wrong vector length, non-positive duration, bad config value"""


class ProtocolError(ArmlinkError):
    """Wire protocol violation"""


class PacketError(ProtocolError):
    """A single frame could not be decoded (framing, field count, checksum, number format)"""


class TransportError(ArmlinkError):
    """Serial link failure"""
