import logging
import smtplib

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from sqlalchemy.orm import Session

from tourbook.auth import jwt_handler
from tourbook.auth.dependencies import AuthContext, protect
from tourbook.auth.passwords import verify_password
from tourbook.auth.reset_tokens import clear_reset_token, consume_reset_token, create_reset_token
from tourbook.core import config
from tourbook.core.errors import Fatal, NotFound, Unauthenticated, ValidationError
from tourbook.database import get_db
from tourbook.models.user import User
from tourbook.serializers import to_dict
from tourbook.services.email import Mailer, get_mailer
from tourbook.store import Store

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

LOGGED_OUT_COOKIE_VALUE = 'loggedout'
LOGGED_OUT_COOKIE_SECONDS = 10


class PasswordConfirmation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(min_length=config.PASSWORD_MIN_LENGTH)
    password_confirm: str = Field(alias='passwordConfirm')

    @model_validator(mode='after')
    def passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError('Passwords are not the same!')
        return self


class SignupRequest(PasswordConfirmation):
    name: str = Field(min_length=1)
    email: EmailStr


class LoginRequest(BaseModel):
    email: str = ''
    password: str = ''


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(PasswordConfirmation):
    pass


class UpdatePasswordRequest(PasswordConfirmation):
    password_current: str = Field(alias='passwordCurrent')


def find_user_by_email(db: Session, email: str) -> User | None:
    return (
        db.query(User)
        .filter(User.email == email.strip().lower(), User.active.is_(True))
        .first()
    )


def create_send_token(user: User, response: Response) -> dict:
    token = jwt_handler.issue_token(user.id, user.token_version or 0)
    response.set_cookie(
        key=config.JWT_COOKIE_NAME,
        value=token,
        max_age=config.JWT_COOKIE_EXPIRES_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.JWT_COOKIE_SECURE,
        samesite='lax',
    )
    return {'status': 'success', 'token': token, 'data': {'userObj': to_dict(user)}}


@router.post('/signup', status_code=status.HTTP_201_CREATED)
def signup(
    data: SignupRequest,
    response: Response,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    # Role and account flags are never taken from a public signup.
    user = Store(db, User).create({'name': data.name, 'email': data.email, 'password': data.password})
    logger.info('New account %s signed up', user.id)

    try:
        mailer.send_welcome(user.name, user.email, f'{config.PUBLIC_BASE_URL}/me')
    except (smtplib.SMTPException, OSError):
        logger.exception('Welcome email to user %s could not be sent', user.id)

    return create_send_token(user, response)


@router.post('/login')
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    if not data.email or not data.password:
        raise ValidationError('Please provide email and password!')

    user = find_user_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.password):
        raise Unauthenticated('Incorrect email or password')

    return create_send_token(user, response)


@router.get('/logout')
def logout(response: Response):
    response.set_cookie(
        key=config.JWT_COOKIE_NAME,
        value=LOGGED_OUT_COOKIE_VALUE,
        max_age=LOGGED_OUT_COOKIE_SECONDS,
        httponly=True,
    )
    return {'status': 'success'}


@router.post('/forgotPassword')
def forgot_password(
    data: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = find_user_by_email(db, data.email)
    if user is None:
        raise NotFound('There is no user with email address.')

    reset_token = create_reset_token(user)
    db.commit()

    reset_url = f'{config.PUBLIC_BASE_URL}/api/v1/users/resetPassword/{reset_token}'
    try:
        mailer.send_password_reset(user.name, user.email, reset_url)
    except (smtplib.SMTPException, OSError) as exc:
        clear_reset_token(user)
        db.commit()
        logger.exception('Password reset email to user %s could not be sent', user.id)
        raise Fatal('There was an error sending the email. Try again later!') from exc

    return {'status': 'success', 'message': 'Token sent to email!'}


@router.patch('/resetPassword/{token}')
def reset_password(
    token: str,
    data: ResetPasswordRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    user = consume_reset_token(db, token)
    if user is None:
        raise ValidationError('Token is invalid or has expired')

    user.password = data.password
    db.commit()
    return create_send_token(user, response)


@router.patch('/updateMyPassword')
def update_my_password(
    data: UpdatePasswordRequest,
    response: Response,
    context: AuthContext = Depends(protect),
    db: Session = Depends(get_db),
):
    user = Store(db, User).find_by_id(context.id)
    if user is None:
        raise Unauthenticated('The user belonging to this token does no longer exist.')

    if not verify_password(data.password_current, user.password):
        raise Unauthenticated('Your current password is wrong.')

    user.password = data.password
    db.commit()
    return create_send_token(user, response)
