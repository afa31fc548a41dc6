"""
Google Drive Service
Link sharing, copying and deletion of quote PDFs, quote sheets and job sheets
"""

import logging
from typing import Optional

import httpx

from .google_auth import get_access_token

logger = logging.getLogger(__name__)

GOOGLE_DRIVE_API = "https://www.googleapis.com/drive/v3"


def drive_view_link(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view"


async def share_file_with_link(file_id: Optional[str]) -> Optional[str]:
    """
    Share a file so anyone with the link can view it
    Returns the shareable link or None if failed
    """
    if not file_id:
        return None

    access_token = await get_access_token()
    if not access_token:
        return None

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                f"{GOOGLE_DRIVE_API}/files/{file_id}/permissions",
                headers={"Authorization": f"Bearer {access_token}"},
                json={"role": "reader", "type": "anyone"},
            )

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to share Drive file {file_id}: {response.text}")
            return None

        link = drive_view_link(file_id)
        logger.info(f"✅ Shared Drive file {file_id}: {link}")
        return link

    except httpx.HTTPError as e:
        logger.error(f"❌ Error sharing Drive file: {str(e)}")
        return None


async def copy_file(file_id: str, new_name: str) -> Optional[str]:
    """
    Copy a file in Google Drive
    Returns the new file ID or None if failed
    """
    access_token = await get_access_token()
    if not access_token:
        return None

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{GOOGLE_DRIVE_API}/files/{file_id}/copy",
                headers={"Authorization": f"Bearer {access_token}"},
                json={"name": new_name},
            )

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to copy Drive file {file_id}: {response.text}")
            return None

        new_id = response.json().get("id")
        logger.info(f"✅ Copied Drive file {file_id} to {new_id} ({new_name})")
        return new_id

    except httpx.HTTPError as e:
        logger.error(f"❌ Error copying Drive file: {str(e)}")
        return None


async def delete_file(file_id: Optional[str]) -> bool:
    """
    Delete a file from Google Drive
    Returns True if deleted (or already gone), False if failed
    """
    if not file_id:
        return False

    access_token = await get_access_token()
    if not access_token:
        return False

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.delete(
                f"{GOOGLE_DRIVE_API}/files/{file_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code in [200, 204, 404]:
            logger.info(f"✅ Deleted Drive file {file_id}")
            return True

        logger.error(f"❌ Failed to delete Drive file {file_id}: {response.text}")
        return False

    except httpx.HTTPError as e:
        logger.error(f"❌ Error deleting Drive file: {str(e)}")
        return False
