from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session

from tourbook.auth.dependencies import AuthContext, protect, restrict_to
from tourbook.auth.roles import Role
from tourbook.controllers.factory import resource_controller
from tourbook.core import config
from tourbook.core.errors import ValidationError
from tourbook.database import get_db
from tourbook.models.user import User

router = APIRouter(tags=['users'])

users = resource_controller(User)

admin_only = restrict_to(Role.ADMIN)

SELF_UPDATE_FIELDS = {'name', 'email', 'photo'}


class UpdateMeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    email: EmailStr | None = None
    photo: str | None = None
    # Accepted only so they can be refused with a pointer to the right route.
    password: str | None = None
    password_confirm: str | None = Field(default=None, alias='passwordConfirm')


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=config.PASSWORD_MIN_LENGTH)
    role: Role = Role.USER
    photo: str | None = None


class UserUpdate(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    photo: str | None = None
    role: Role | None = None


@router.get('/me')
def get_me(context: AuthContext = Depends(protect), db: Session = Depends(get_db)):
    return users.get_one(db, context.id)


@router.patch('/updateMe')
def update_me(
    data: UpdateMeRequest,
    context: AuthContext = Depends(protect),
    db: Session = Depends(get_db),
):
    if data.password is not None or data.password_confirm is not None:
        raise ValidationError('This route is not for password updates. Please use /updateMyPassword.')

    changes = data.model_dump(exclude_unset=True, include=SELF_UPDATE_FIELDS)
    return users.update_one(db, context.id, changes)


@router.delete('/deleteMe', status_code=status.HTTP_204_NO_CONTENT)
def delete_me(context: AuthContext = Depends(protect), db: Session = Depends(get_db)):
    users.store(db).find_and_update_by_id(context.id, {'active': False})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('')
def list_users(request: Request, _: AuthContext = Depends(admin_only), db: Session = Depends(get_db)):
    return users.get_all(db, request.query_params.multi_items())


@router.post('', status_code=status.HTTP_201_CREATED)
def create_user(data: UserCreate, _: AuthContext = Depends(admin_only), db: Session = Depends(get_db)):
    return users.create_one(db, data.model_dump(exclude_none=True))


@router.get('/{user_id}')
def get_user(user_id: int, _: AuthContext = Depends(admin_only), db: Session = Depends(get_db)):
    return users.get_one(db, user_id)


@router.patch('/{user_id}')
def update_user(
    user_id: int,
    data: UserUpdate,
    _: AuthContext = Depends(admin_only),
    db: Session = Depends(get_db),
):
    # Passwords only change through the password flows.
    return users.update_one(db, user_id, data.model_dump(exclude_unset=True))


@router.delete('/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, _: AuthContext = Depends(admin_only), db: Session = Depends(get_db)):
    users.delete_one(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
