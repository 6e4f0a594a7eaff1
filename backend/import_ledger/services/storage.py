"""MinIO object storage for uploaded import files."""
import io
import logging
import secrets
import time

from minio import Minio
from minio.error import S3Error

from import_ledger.core.config import settings

logger = logging.getLogger(__name__)


def build_client() -> Minio:
    return Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


def import_file_key(organization_id: str, file_name: str) -> str:
    """imports/{org}/{unix ms}-{random}-{file name}"""
    stamp = int(time.time() * 1000)
    return f"imports/{organization_id}/{stamp}-{secrets.token_hex(3)}-{file_name}"


class ImportFileStore:
    def __init__(self, client: Minio, bucket: str = settings.MINIO_BUCKET_NAME):
        self.client = client
        self.bucket = bucket

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not already exist. Called on startup."""
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info("Created MinIO bucket: %s", self.bucket)
            else:
                logger.debug("MinIO bucket already exists: %s", self.bucket)
        except S3Error as exc:
            logger.error("Failed to ensure MinIO bucket %s: %s", self.bucket, exc)
            raise

    def put(self, object_name: str, data: bytes, content_type: str, metadata: dict[str, str] | None = None) -> str:
        """Upload an import file. Returns the object key, which becomes the import's file_url."""
        self.client.put_object(
            bucket_name=self.bucket,
            object_name=object_name,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
            metadata=metadata,
        )
        logger.info("Uploaded %s/%s (%d bytes)", self.bucket, object_name, len(data))
        return object_name
