import asyncio
import logging
import secrets
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from . import crypto
from .crypto import Algorithm
from .errors import DecodingError, NetworkError, RndcError, SessionStateError, UnknownError
from .framing import decode, read_frame, write_frame
from .messages import NULL_COMMAND, CommandResult, get_nonce, new_message, now, parse_result
from .transport import StreamTransport, Transport

"""
session.py — handshake + command exchange with a name server's control channel.

Flow for one command (one TCP connection):
1. Handshake: send a signed "null" command without a nonce; the daemon
   answers with `_ctrl._nonce`.
2. Command: send the real command echoing that nonce; read one response;
   close the connection; report `_data.result/text/err`.

A Session does exactly that once. RndcClient holds the configuration and
opens a fresh Session per call.

Notes:
- Every message gets a new random 32-bit serial, not a counter.
- `_exp` is informational; nothing here enforces it.
"""

log = logging.getLogger(__name__)

DEFAULT_PORT = 953


class SessionState(Enum):
    IDLE = "idle"
    HANDSHAKING = "handshaking"
    AUTHENTICATED = "authenticated"
    AWAITING_RESPONSE = "awaiting-response"
    CLOSED = "closed"
    ERROR = "error"


def random_serial() -> int:
    return secrets.randbits(32)


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split "host:port" into (host, port).

    Accepts "[v6addr]:port", a bare host, or a bare IPv6 address; a missing
    port means DEFAULT_PORT.
    """
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise NetworkError(f"Invalid server address: {address!r}")
        port = rest[1:]
    elif address.count(":") == 1:
        host, port = address.split(":")
    else:
        host, port = address, ""

    if not host:
        raise NetworkError(f"Invalid server address: {address!r}")
    if not port:
        return host, DEFAULT_PORT
    try:
        port_num = int(port)
    except ValueError:
        raise NetworkError(f"Invalid port in server address: {address!r}") from None
    if not 0 < port_num < 65536:
        raise NetworkError(f"Port out of range in server address: {address!r}")
    return host, port_num


class Session:
    """
    One handshake followed by one command over one connection.

    clock and serial_source are injectable so tests can pin `_tim`/`_ser`.
    max_frame_size caps the response payload length; None means no cap.
    Not safe to drive from two callers at once.
    """

    def __init__(
        self,
        address: str,
        algorithm: Algorithm,
        secret: bytes,
        transport: Optional[Transport] = None,
        clock: Callable[[], int] = now,
        serial_source: Callable[[], int] = random_serial,
        verify_responses: bool = False,
        max_frame_size: Optional[int] = None,
    ) -> None:
        self.address = address
        self.algorithm = algorithm
        self._secret = secret
        self.transport = transport if transport is not None else StreamTransport()
        self.clock = clock
        self.serial_source = serial_source
        self.verify_responses = verify_responses
        self.max_frame_size = max_frame_size
        self.state = SessionState.IDLE
        self.nonce: Optional[str] = None

    # --- state helpers ---

    def _enter(self, state: SessionState) -> None:
        log.debug("%s: %s -> %s", self.address, self.state.value, state.value)
        self.state = state

    def _expect(self, state: SessionState, action: str) -> None:
        if self.state is not state:
            raise SessionStateError(f"Cannot {action} in state {self.state.value!r}")

    async def _abort(self) -> None:
        """Mark the session failed and drop the connection."""
        self._enter(SessionState.ERROR)
        try:
            await self.transport.shutdown()
        except NetworkError as exc:
            log.debug("%s: shutdown after failure failed too: %s", self.address, exc)

    # --- wire helpers ---

    def _message(self, command: str, nonce: Optional[str] = None) -> dict:
        return new_message(command, self.serial_source(), self.clock(), nonce)

    async def _exchange(self, body: dict) -> bytes:
        """Sign and send body, return the raw response frame."""
        await write_frame(self.transport, crypto.encode_message(self._secret, self.algorithm, body))
        frame = await read_frame(self.transport, self.max_frame_size)
        if self.verify_responses and not crypto.verify(self._secret, self.algorithm, frame):
            raise DecodingError("Response signature does not verify")
        return frame

    # --- protocol ---

    async def handshake(self) -> str:
        """Connect and obtain the server nonce. Returns the nonce."""
        self._expect(SessionState.IDLE, "handshake")
        self._enter(SessionState.HANDSHAKING)
        try:
            host, port = parse_address(self.address)
            await self.transport.connect(host, port)
            response = decode(await self._exchange(self._message(NULL_COMMAND)))
            self.nonce = get_nonce(response)
        except Exception:
            await self._abort()
            raise
        self._enter(SessionState.AUTHENTICATED)
        return self.nonce

    async def command(self, name: str) -> CommandResult:
        """Send one command with the handshake nonce and close the connection."""
        self._expect(SessionState.AUTHENTICATED, "send a command")
        self._enter(SessionState.AWAITING_RESPONSE)
        log.debug("%s: sending command %r", self.address, name)
        try:
            frame = await self._exchange(self._message(name, self.nonce))
        except Exception:
            await self._abort()
            raise
        self.nonce = None

        # The connection goes away whatever the response turns out to hold.
        try:
            await self.transport.shutdown()
        except NetworkError:
            self._enter(SessionState.ERROR)
            raise
        self._enter(SessionState.CLOSED)

        try:
            return parse_result(decode(frame))
        except DecodingError:
            self._enter(SessionState.ERROR)
            raise

    async def run(self, name: str) -> CommandResult:
        """
        Handshake, then command.

        Failures outside the RndcError family are raised as UnknownError.
        """
        try:
            await self.handshake()
            return await self.command(name)
        except RndcError:
            raise
        except Exception as exc:
            raise UnknownError(f"Unexpected failure running {name!r}: {exc!r}") from exc


class RndcClient:
    """
    Configuration for talking to one control channel.

    Each execute() opens its own Session and connection, so a client may be
    shared freely; its algorithm and key never change after construction.
    """

    def __init__(
        self,
        address: str,
        algorithm: Union[str, Algorithm],
        secret_b64: str,
        timeout: Optional[float] = None,
        verify_responses: bool = False,
        transport_factory: Optional[Callable[[], Transport]] = None,
        max_frame_size: Optional[int] = None,
    ) -> None:
        self.address = address
        self.algorithm = crypto.parse_algorithm(algorithm)
        self._secret = crypto.decode_secret(secret_b64)
        self.timeout = timeout
        self.verify_responses = verify_responses
        self.transport_factory = transport_factory
        self.max_frame_size = max_frame_size

    @classmethod
    def create(cls, address: str, algorithm: str, secret_b64: str, **kwargs) -> "RndcClient":
        """Raises InvalidAlgorithm or Base64DecodeError on bad configuration."""
        return cls(address, algorithm, secret_b64, **kwargs)

    def new_session(self) -> Session:
        if self.transport_factory is not None:
            transport = self.transport_factory()
        else:
            transport = StreamTransport(self.timeout)
        return Session(
            self.address,
            self.algorithm,
            self._secret,
            transport=transport,
            verify_responses=self.verify_responses,
            max_frame_size=self.max_frame_size,
        )

    async def execute_async(self, command: str) -> CommandResult:
        return await self.new_session().run(command)

    def execute(self, command: str) -> CommandResult:
        """
        Run one command and wait for its result.

        Uses asyncio.run(), so call execute_async() from inside a running loop.
        """
        return asyncio.run(self.execute_async(command))

    def __repr__(self) -> str:
        return f"RndcClient({self.address!r}, {self.algorithm.canonical_name!r})"
