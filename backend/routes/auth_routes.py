from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from backend.auth import google_oauth, jwt_handler
from backend.auth.dependencies import Identity, get_current_identity
from backend.core import config
from backend.core.errors import OAuthError
from backend.database import get_db
from backend.services import directory
from backend.services.token_vault import TokenVault, get_token_vault

router = APIRouter(tags=['auth'])


@router.get('/google/login')
def google_login():
    state = jwt_handler.create_oauth_state()
    return RedirectResponse(url=google_oauth.build_authorization_url(state))


@router.get('/google/callback')
async def google_callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: Session = Depends(get_db),
    vault: TokenVault = Depends(get_token_vault),
):
    if error:
        raise OAuthError(f'Google sign-in was not completed: {error}')
    if not state or not jwt_handler.verify_oauth_state(state):
        raise OAuthError('Invalid OAuth state')
    if not code:
        raise OAuthError('No authorization code provided')

    tokens = await google_oauth.exchange_code(code)
    access_token = tokens['access_token']
    refresh_token = tokens.get('refresh_token')
    user_info = await google_oauth.fetch_userinfo(access_token)

    user = directory.record_sign_in(
        db,
        email=user_info['email'],
        name=user_info.get('name'),
        provider_account_id=user_info.get('id'),
        refresh_token=refresh_token,
        access_token=access_token,
    )

    token = jwt_handler.create_access_token(
        subject=user.email,
        name=user.name,
        google_access_token=access_token,
        encrypted_refresh_token=vault.encrypt(refresh_token) if refresh_token else None,
    )
    if config.FRONTEND_SSO_REDIRECT_URL:
        parsed = urlparse(config.FRONTEND_SSO_REDIRECT_URL)
        query = dict(parse_qsl(parsed.query))
        query.update({'access_token': token, 'token_type': 'bearer'})
        redirect_url = urlunparse(parsed._replace(query=urlencode(query)))
        return RedirectResponse(url=redirect_url, status_code=302)
    return {'access_token': token, 'token_type': 'bearer'}


@router.get('/me')
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return {
        'email': identity.email,
        'name': identity.name,
        'role': directory.get_role(db, identity.email),
    }
