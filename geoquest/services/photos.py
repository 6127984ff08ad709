import io
import os
import uuid
from typing import Dict, Optional, Tuple

from flask import current_app, url_for
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from .errors import ServiceError

ALLOWED_TYPES = {
    'image/jpeg': ('jpg', 'JPEG'),
    'image/png': ('png', 'PNG'),
    'image/webp': ('webp', 'WEBP'),
}


def _upload_folder() -> str:
    folder = current_app.config.get('UPLOAD_FOLDER')
    os.makedirs(folder, exist_ok=True)
    return folder


def _read(file) -> bytes:
    stream = getattr(file, 'stream', file)
    stream.seek(0)
    data = stream.read()
    stream.seek(0)
    return data


class PhotoService:
    @staticmethod
    def validate_photo(file) -> Tuple[bool, Optional[str]]:
        if file is None or not getattr(file, 'filename', None):
            return False, 'No file provided'
        max_bytes = int(current_app.config.get('MAX_PHOTO_BYTES', 10 * 1024 * 1024))
        if len(_read(file)) > max_bytes:
            return False, f'File size must be less than {max_bytes // (1024 * 1024)}MB'
        if file.mimetype not in ALLOWED_TYPES:
            return False, 'Only JPEG, PNG, and WebP images are allowed'
        return True, None

    @staticmethod
    def upload_photo(file) -> Dict:
        ok, error = PhotoService.validate_photo(file)
        if not ok:
            raise ServiceError(error, status_code=400)

        extension, _ = ALLOWED_TYPES[file.mimetype]
        public_id = f"photo_{uuid.uuid4().hex}"
        filename = secure_filename(f"{public_id}.{extension}")
        try:
            data, width, height = PhotoService.compress_photo(
                _read(file),
                file.mimetype,
                max_width=int(current_app.config.get('PHOTO_MAX_WIDTH', 1920)),
                quality=int(current_app.config.get('PHOTO_QUALITY', 80)),
            )
        except (UnidentifiedImageError, OSError) as exc:
            current_app.logger.warning(f"[photo] rejected upload {file.filename!r}: {exc}")
            raise ServiceError('Failed to upload photo', status_code=400) from exc

        with open(os.path.join(_upload_folder(), filename), 'wb') as fh:
            fh.write(data)
        current_app.logger.info(f"[photo] stored {filename} {width}x{height}")
        return {
            'url': url_for('photos.get_photo', filename=filename),
            'public_id': public_id,
            'width': width,
            'height': height,
        }

    @staticmethod
    def delete_photo(public_id: str) -> bool:
        folder = _upload_folder()
        removed = False
        for extension, _ in ALLOWED_TYPES.values():
            path = os.path.join(folder, secure_filename(f"{public_id}.{extension}"))
            if os.path.exists(path):
                os.remove(path)
                removed = True
        current_app.logger.info(f"[photo] delete public_id={public_id} removed={removed}")
        return removed

    @staticmethod
    def generate_thumbnail_url(url: str, width: int = 300, height: int = 200) -> str:
        return f"{url.rstrip('/')}/thumbnail?w={int(width)}&h={int(height)}"

    @staticmethod
    def compress_photo(data: bytes, mimetype: str, max_width: int = 1920, quality: int = 80) -> Tuple[bytes, int, int]:
        """Downscale to ``max_width`` keeping aspect ratio and re-encode."""
        _, image_format = ALLOWED_TYPES[mimetype]
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.width > max_width:
                new_height = round(img.height * max_width / img.width)
                img = img.resize((max_width, new_height))
            if image_format == 'JPEG' and img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')
            out = io.BytesIO()
            img.save(out, format=image_format, quality=quality)
            return out.getvalue(), img.width, img.height

    @staticmethod
    def render_thumbnail(filename: str, width: int = 300, height: int = 200) -> Tuple[bytes, str]:
        if width < 1 or height < 1:
            raise ServiceError('Thumbnail width and height must be at least 1', status_code=400)
        path = os.path.join(_upload_folder(), secure_filename(filename))
        if not os.path.exists(path):
            raise ServiceError('Photo not found', status_code=404)
        with Image.open(path) as img:
            image_format = img.format or 'PNG'
            img.thumbnail((width, height))
            if image_format == 'JPEG' and img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')
            out = io.BytesIO()
            img.save(out, format=image_format)
        return out.getvalue(), Image.MIME.get(image_format, 'application/octet-stream')
