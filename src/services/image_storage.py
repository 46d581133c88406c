"""Local directory storage for uploaded and imported images."""
import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class ImageStorage:
    """
    Stores image files in a local directory and maps them to public URL paths.

    Files written to `root` are served by the application under `url_prefix`,
    so a file saved as `abc.jpg` is referenced from prompts as `/uploads/abc.jpg`.
    """

    def __init__(self, root: Path, url_prefix: str = "/uploads") -> None:
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

    def ensure_root(self) -> None:
        """Create the storage directory if it does not exist yet."""
        self.root.mkdir(parents=True, exist_ok=True)

    def url_for(self, name: str) -> str:
        """Public path for a stored file name."""
        return f"{self.url_prefix}/{name}"

    def save(self, name: str, data: bytes) -> str:
        """
        Write `data` under `name` and return its public path.

        Raises:
            ValueError: If `name` is not a plain file name.
        """
        if not name or PurePosixPath(name).name != name or name in {".", ".."}:
            raise ValueError(f"Invalid image file name: '{name}'")
        self.ensure_root()
        (self.root / name).write_bytes(data)
        logger.debug("Stored image %s (%d bytes)", name, len(data))
        return self.url_for(name)

    def resolve(self, path: str) -> Path:
        """
        Map a stored image reference back to a file inside the storage root.

        Accepts public paths (`/uploads/abc.jpg`) as well as bare or relative
        names; only the final path component is used.

        Raises:
            FileNotFoundError: If the reference does not name a file.
        """
        bare = path.split("?", 1)[0].split("#", 1)[0]
        name = PurePosixPath(bare).name
        if not name or name in {".", ".."}:
            raise FileNotFoundError(path)
        return self.root / name

    def read(self, path: str) -> bytes:
        """
        Read the bytes of a stored image.

        Raises:
            FileNotFoundError: If the image does not exist.
        """
        return self.resolve(path).read_bytes()
