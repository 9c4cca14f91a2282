"""Profile image hosting on Cloudinary."""
import logging
from dataclasses import dataclass

import cloudinary
import cloudinary.api
import cloudinary.uploader

from epass.core.config import settings
from epass.core.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

PROFILE_TRANSFORMATION = [
    {"width": 600, "height": 600, "crop": "fill", "gravity": "face"},
]


@dataclass
class UploadedImage:
    url: str
    public_id: str


class CloudinaryImageHost:
    """Uploads profile photos and returns their hosted URL."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.folder = folder

    def upload(self, image: str, public_id: str) -> UploadedImage:
        """
        Upload an image given as a data URL, base64 string or remote URL.

        The image is cropped to a 600x600 square centred on the face. Any
        failure, whether from the API or the network, is reported as
        UpstreamUnavailable; uploads are never retried automatically.
        """
        try:
            result = cloudinary.uploader.upload(
                image,
                folder=self.folder,
                public_id=public_id,
                overwrite=True,
                transformation=PROFILE_TRANSFORMATION,
            )
        except Exception as e:
            logger.error(f"Cloudinary upload of {public_id} failed: {e}")
            raise UpstreamUnavailable("Unable to process profile image.") from e

        logger.info(f"Uploaded profile image {result['public_id']}")
        return UploadedImage(url=result["secure_url"], public_id=result["public_id"])

    def ping(self) -> bool:
        """Return True if the Cloudinary API answers with status ok."""
        return cloudinary.api.ping().get("status") == "ok"


# Cached host
_image_host: CloudinaryImageHost | None = None


def get_image_host() -> CloudinaryImageHost | None:
    """Dependency returning the image host, or None when Cloudinary is not configured."""
    global _image_host

    if not settings.cloudinary_configured:
        return None

    if _image_host is None:
        _image_host = CloudinaryImageHost(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
        )
    return _image_host
