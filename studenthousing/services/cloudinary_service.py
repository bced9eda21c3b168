import re
from urllib.parse import urlparse
import cloudinary
import cloudinary.uploader
from flask import current_app

PROPERTY_IMAGES_FOLDER = 'property-images'
AVATARS_FOLDER = 'avatars'
MANAGED_FOLDERS = (PROPERTY_IMAGES_FOLDER, AVATARS_FOLDER)

CLOUDINARY_HOST = 'res.cloudinary.com'

# .../image/upload/v1712345678/property-images/abc123.jpg -> property-images/abc123
_PUBLIC_ID_PATTERN = re.compile(r'/upload/(?:v\d+/)?(?P<public_id>[^.]+?)(?:\.[A-Za-z0-9]+)?$')


def public_id_from_url(url):
    """Extract the Cloudinary public id from a delivery URL"""
    if not url:
        return None
    match = _PUBLIC_ID_PATTERN.search(url)
    return match.group('public_id') if match else None


def managed_public_id(url, cloud_name):
    """Public id of an image this service uploaded to our cloud, else None"""
    if not url or not cloud_name:
        return None

    parsed = urlparse(url)
    if parsed.scheme != 'https' or parsed.netloc != CLOUDINARY_HOST:
        return None
    if not parsed.path.startswith(f'/{cloud_name}/image/upload/'):
        return None

    public_id = public_id_from_url(parsed.path)
    if not public_id or '..' in public_id:
        return None
    if not any(public_id.startswith(f'{folder}/') for folder in MANAGED_FOLDERS):
        return None
    return public_id


class CloudinaryService:
    def __init__(self):
        self.cloud_name = current_app.config.get('CLOUDINARY_CLOUD_NAME')
        cloudinary.config(
            cloud_name=self.cloud_name,
            api_key=current_app.config.get('CLOUDINARY_API_KEY'),
            api_secret=current_app.config.get('CLOUDINARY_API_SECRET')
        )

    def upload_image(self, file, folder=PROPERTY_IMAGES_FOLDER):
        """Upload an image to Cloudinary and return the secure URL"""
        try:
            result = cloudinary.uploader.upload(
                file,
                folder=folder,
                resource_type='image'
            )
            return result.get('secure_url')
        except Exception as e:
            current_app.logger.error(f"Cloudinary image upload error: {str(e)}")
            return None

    def delete_image(self, url):
        """Delete an image we uploaded; URLs pointing anywhere else are left alone"""
        public_id = managed_public_id(url, self.cloud_name)
        if not public_id:
            return False
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type='image')
            return result.get('result') == 'ok'
        except Exception as e:
            current_app.logger.error(f"Cloudinary delete error for {public_id}: {str(e)}")
            return False
