import os
import time

from flask import current_app
from werkzeug.utils import safe_join, secure_filename

PUBLIC_PREFIX = "/uploads/"


def is_image(file_storage) -> bool:
    return bool(file_storage and (file_storage.mimetype or "").startswith("image/"))


def save_upload(file_storage, subdir: str) -> str:
    """Stores the file as <epoch-ms>-<secure name> and returns its public path."""
    folder = os.path.join(current_app.config["UPLOAD_FOLDER"], subdir)
    os.makedirs(folder, exist_ok=True)

    filename = f"{int(time.time() * 1000)}-{secure_filename(file_storage.filename) or 'upload'}"
    file_storage.save(os.path.join(folder, filename))
    return f"{PUBLIC_PREFIX}{subdir}/{filename}"


def delete_upload(public_path: str) -> bool:
    if not public_path or not public_path.startswith(PUBLIC_PREFIX):
        return False
    path = safe_join(current_app.config["UPLOAD_FOLDER"], public_path[len(PUBLIC_PREFIX):])
    if path and os.path.isfile(path):
        os.remove(path)
        return True
    return False
