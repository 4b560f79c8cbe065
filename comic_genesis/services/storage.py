import os
import uuid


class LocalMediaStore:
    def __init__(self, root_dir: str, url_prefix: str):
        self.root_dir = root_dir
        self.url_prefix = url_prefix.rstrip("/")

    def save_document(self, data: bytes, filename: str) -> tuple[str, str]:
        """Write ``data`` under a fresh directory so equal titles never collide."""
        folder = str(uuid.uuid4())
        target_dir = os.path.join(self.root_dir, folder)
        os.makedirs(target_dir, exist_ok=True)

        file_path = os.path.join(target_dir, filename)
        with open(file_path, "wb") as f:
            f.write(data)

        url = f"{self.url_prefix}/{folder}/{filename}"
        return file_path, url
