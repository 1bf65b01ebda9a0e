"""
Firebase Authentication utilities for the HTTP API.

Provides Firebase ID token verification and a FastAPI dependency that resolves
the calling user from an ``Authorization: Bearer <token>`` header.
"""

import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials, auth
from fastapi import Header, HTTPException

from src.models.response_models import AuthenticatedUser
from src.utils.config import get_settings
from src.utils.exceptions import AuthError

logger = logging.getLogger(__name__)

# Global Firebase app instance
_firebase_app = None


def initialize_firebase_admin() -> None:
    """
    Initialize Firebase Admin SDK for authentication.

    Uses the service account JSON file from FIREBASE_SERVICE_ACCOUNT_PATH (or the
    Firestore credentials) when present, otherwise Application Default Credentials.
    If already initialized, does nothing.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.debug("[firebase-auth] Firebase Admin already initialized")
        return

    try:
        settings = get_settings()
        service_account_path = settings.FIREBASE_SERVICE_ACCOUNT_PATH or settings.FIRESTORE_CREDENTIALS
        project_id = settings.FIRESTORE_PROJECT_ID or settings.GOOGLE_CLOUD_PROJECT

        cred = None
        if service_account_path:
            service_account_path = os.path.abspath(os.path.expanduser(service_account_path))
            if os.path.exists(service_account_path):
                try:
                    cred = credentials.Certificate(service_account_path)
                    logger.info(f"[firebase-auth] Using explicit service account: {service_account_path}")
                except (ValueError, IOError) as cred_err:
                    logger.warning(f"[firebase-auth] Failed to load service account file; falling back to ADC: {str(cred_err)}")
            else:
                logger.warning(f"[firebase-auth] Service account file not found: {service_account_path}; falling back to ADC")
        else:
            logger.info("[firebase-auth] No service account path provided; using ADC (Application Default Credentials)")

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred, {'projectId': project_id})
        else:
            _firebase_app = firebase_admin.initialize_app(options={'projectId': project_id})

        logger.info("[firebase-auth] Firebase Admin SDK initialized successfully")

    except Exception as e:
        logger.error(f"[firebase-auth] Failed to initialize Firebase Admin SDK: {str(e)}")
        logger.error("[firebase-auth] Authenticated routes will reject requests without Firebase Admin")
        raise


def verify_firebase_token(token: str) -> AuthenticatedUser:
    """
    Verify a Firebase ID token and return the caller's identity.

    Raises:
        AuthError: 401 when the token is missing, expired or revoked;
                   403 when it is malformed or signed for another project.
    """
    if not token or not token.strip():
        raise AuthError("Token is empty or missing", status_code=401)

    try:
        decoded_token = auth.verify_id_token(token)
    # Expired and revoked are subclasses of InvalidIdTokenError, so they come first
    except auth.ExpiredIdTokenError as e:
        logger.warning(f"[firebase-auth] Expired ID token: {str(e)}")
        raise AuthError("Firebase ID token has expired. Please sign in again.", status_code=401) from e
    except auth.RevokedIdTokenError as e:
        logger.warning(f"[firebase-auth] Revoked ID token: {str(e)}")
        raise AuthError("Firebase ID token has been revoked. Please sign in again.", status_code=401) from e
    except auth.InvalidIdTokenError as e:
        logger.warning(f"[firebase-auth] Invalid ID token: {str(e)}")
        raise AuthError(f"Invalid Firebase ID token: {str(e)}", status_code=403) from e
    except auth.CertificateFetchError as e:
        logger.error(f"[firebase-auth] Certificate fetch error: {str(e)}")
        raise AuthError("Unable to verify token: certificate error", status_code=401) from e
    except ValueError as e:
        logger.warning(f"[firebase-auth] Malformed token: {str(e)}")
        raise AuthError(f"Token verification failed: {str(e)}", status_code=403) from e

    user_id = decoded_token.get('uid', 'unknown')
    logger.info(f"[firebase-auth] Token verified successfully for user: {user_id[:12]}...")

    return AuthenticatedUser(
        uid=decoded_token['uid'],
        email=decoded_token.get('email'),
        email_verified=bool(decoded_token.get('email_verified', False)),
        name=decoded_token.get('name'),
        picture=decoded_token.get('picture'),
    )


def is_firebase_initialized() -> bool:
    """Check if Firebase Admin SDK is initialized."""
    return _firebase_app is not None


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthError("No token provided", status_code=401)
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Authorization header must be 'Bearer <token>'", status_code=401)
    return token.strip()


async def get_current_user(authorization: Optional[str] = Header(default=None)) -> AuthenticatedUser:
    """FastAPI dependency resolving the authenticated caller."""
    try:
        return verify_firebase_token(bearer_token(authorization))
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
