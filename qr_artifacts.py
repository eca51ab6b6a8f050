"""QR encoding and on-disk placement of generated images."""
import logging
import os
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import qrcode
from PIL import Image
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage

logger = logging.getLogger(__name__)

QR_IMAGE_SIZE = 256
QR_BORDER = 4
IMAGE_EXTENSION = "png"

_MAX_NAME_ATTEMPTS = 32
_ARTIFACT_NAME = re.compile(r"^(\d+)\.%s$" % IMAGE_EXTENSION)


class EncodingCapacityExceeded(ValueError):
    def __init__(self, length: int):
        super().__init__(f"text of {length} characters does not fit in a QR code")
        self.length = length


class StoreWriteFailed(OSError):
    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(f"could not write artifact {path}: {cause}")
        self.path = path
        self.cause = cause


def encode(text: str) -> Image.Image:
    """
    Encode text as a QR code rasterized to QR_IMAGE_SIZE x QR_IMAGE_SIZE pixels.
    Uses error-correction level M; longer text gets a denser symbol but the
    output size never changes.
    """
    if not text:
        raise ValueError("text is required")

    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=1,
        border=QR_BORDER,
    )
    qr.add_data(text)
    try:
        qr.make(fit=True)
    except DataOverflowError as exc:
        raise EncodingCapacityExceeded(len(text)) from exc

    # Whole-pixel modules, centred; leftover pixels widen the quiet zone.
    qr.box_size = QR_IMAGE_SIZE // (qr.modules_count + 2 * QR_BORDER)
    symbol = qr.make_image(
        image_factory=PilImage, fill_color="black", back_color="white"
    ).get_image()
    image = Image.new(symbol.mode, (QR_IMAGE_SIZE, QR_IMAGE_SIZE), "white")
    offset = (QR_IMAGE_SIZE - symbol.size[0]) // 2
    image.paste(symbol, (offset, offset))
    return image


def parse_created_at(file_name: str) -> Optional[datetime]:
    match = _ARTIFACT_NAME.match(file_name)
    if not match:
        return None
    return _stamp_to_datetime(int(match.group(1)))


def _stamp_to_datetime(stamp: int) -> datetime:
    seconds, nanos = divmod(stamp, 1_000_000_000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(
        microsecond=nanos // 1000
    )


@dataclass(frozen=True)
class Artifact:
    file_name: str
    path: str
    url_path: str
    created_at: datetime


class ArtifactStore:
    """
    Writes encoded images under <static_root>/<artifact_subdir>/.

    Names are nanosecond timestamps. The last issued stamp is remembered so
    two calls in the same process never share a name even when the clock
    does not advance between them; exclusive-create guards against files
    left by other processes.
    """

    def __init__(
        self,
        static_root: str,
        artifact_subdir: str,
        clock_ns: Callable[[], int] = time.time_ns,
    ):
        self.directory = os.path.join(static_root, artifact_subdir)
        self.url_prefix = "/static/" + artifact_subdir.strip("/")
        self._clock_ns = clock_ns
        self._lock = threading.Lock()
        self._last_stamp = 0

    def exists(self) -> bool:
        return os.path.isdir(self.directory)

    def _next_stamp(self) -> int:
        with self._lock:
            stamp = max(self._clock_ns(), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def store(self, image: Image.Image) -> Artifact:
        for _ in range(_MAX_NAME_ATTEMPTS):
            stamp = self._next_stamp()
            file_name = f"{stamp}.{IMAGE_EXTENSION}"
            path = os.path.join(self.directory, file_name)
            try:
                handle = open(path, "xb")
            except FileExistsError:
                logger.debug("Artifact name %s already taken, retrying", file_name)
                continue
            except OSError as exc:
                logger.error("Cannot create artifact %s: %s", path, exc)
                raise StoreWriteFailed(path, exc) from exc

            try:
                with handle:
                    image.save(handle, format="PNG")
            except OSError as exc:
                self._discard(path)
                logger.error("Cannot write artifact %s: %s", path, exc)
                raise StoreWriteFailed(path, exc) from exc
            except Exception:
                self._discard(path)
                raise

            logger.info("Stored artifact %s", file_name)
            return Artifact(
                file_name=file_name,
                path=path,
                url_path=f"{self.url_prefix}/{file_name}",
                created_at=_stamp_to_datetime(stamp),
            )

        raise StoreWriteFailed(self.directory, FileExistsError("no free artifact name"))

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove partial artifact %s: %s", path, exc)
