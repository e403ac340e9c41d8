"""
File uploads (guarantor pictures)
"""

import os
import uuid
from typing import Optional
from fastapi import UploadFile

from ..config import FinanceConfig
from ..errors import ValidationError
from ..logging_config import get_logger, log_action


logger = get_logger("installments.uploads")


async def save_upload(upload: Optional[UploadFile], folder: str, config: FinanceConfig) -> Optional[str]:
    """
    Store an uploaded file under the upload directory

    Returns:
        Public path of the stored file ("/uploads/<folder>/<name>"), or None
        when no file was sent
    """
    if upload is None or not upload.filename:
        return None

    content = await upload.read()
    if len(content) > config.max_upload_size_mb * 1024 * 1024:
        raise ValidationError("File too large", {"maxSizeMb": config.max_upload_size_mb})

    upload_dir = os.path.join(config.upload_dir, folder)
    os.makedirs(upload_dir, exist_ok=True)
    file_name = f"{uuid.uuid4()}{os.path.splitext(upload.filename)[1].lower()}"
    with open(os.path.join(upload_dir, file_name), "wb") as f:
        f.write(content)

    log_action(
        logger, "info", "File uploaded",
        action="upload", resource=f"{folder}/{file_name}",
        extra={"original_name": upload.filename, "size": len(content)}
    )
    return f"/uploads/{folder}/{file_name}"
