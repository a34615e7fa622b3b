"""Infrastructure layer."""

from qcvolume.infra.qingcloud import QingCloudClient, sign_query

__all__ = [
    "QingCloudClient",
    "sign_query",
]
