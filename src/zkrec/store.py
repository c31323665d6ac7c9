import os
import tempfile


# names of the artifacts produced for one circuit
PARAMS = "params"
SHAPE = "shape"
VERIFICATION_KEY = "verification_key"
PROOF = "proof"
PUBLIC = "public"


class ArtifactStore:
    # Persists opaque byte blobs by name in a directory, with an optional prefix so that several circuits
    # (for example a base circuit and its verifier circuit) can share one directory. Every write goes to a
    # temporary file first and is then renamed into place, so a reader never sees a partial artifact.

    SUFFIXES = {
        PARAMS: ".bin",
        SHAPE: ".bin",
        VERIFICATION_KEY: ".json",
        PROOF: ".json",
        PUBLIC: ".json",
    }

    def __init__(self, root: str, prefix: str = "") -> None:
        self.root = root
        self.prefix = prefix

    def path(self, name: str) -> str:
        return os.path.join(self.root, self.prefix + name + self.SUFFIXES.get(name, ".bin"))

    def exists(self, name: str) -> bool:
        return os.path.exists(self.path(name))

    def save(self, name: str, data: bytes) -> str:
        os.makedirs(self.root, exist_ok=True)
        path = self.path(name)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as file:
                file.write(data)
            os.replace(tmp, path)
        except BaseException:
            os.unlink(tmp)
            raise
        return path

    def load(self, name: str) -> bytes:
        with open(self.path(name), "rb") as file:
            return file.read()

    def scoped(self, prefix: str) -> "ArtifactStore":
        return ArtifactStore(self.root, self.prefix + prefix)
