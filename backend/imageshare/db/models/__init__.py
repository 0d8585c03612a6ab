from imageshare.db.models.admin_audit_log import AdminAuditLog
from imageshare.db.models.album import Album, AlbumImage
from imageshare.db.models.image import Image
from imageshare.db.models.user import User

__all__ = ["AdminAuditLog", "Album", "AlbumImage", "Image", "User"]
