"""
Credential forwarding for the search cluster.
"""

from typing import Dict, Optional

from ..models.export_models import InvalidRequestError


def extract_basic_auth(authorization: Optional[str]) -> Dict[str, str]:
    """
    Turn the caller's Authorization header into headers for the cluster.

    Only Basic credentials are forwarded; the cluster does the actual
    authentication.

    Raises:
        InvalidRequestError: If the header is missing or not Basic
    """
    if not authorization or not authorization.startswith("Basic "):
        raise InvalidRequestError("wrong format on Authorization header")

    return {"Authorization": authorization}
