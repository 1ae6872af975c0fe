from fastapi import APIRouter, HTTPException, status, Depends
from sqlmodel import Session, select
from app.models.user import User
from app.schemas.user import UserCreate, UserRead, Token
from app.core.security import verify_password, get_password_hash, create_access_token, decode_access_token
from app.database import get_session
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError

router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

DEFAULT_AVATAR = "👤"


@router.get("/check-username/{username}")
def check_username(username: str, session: Session = Depends(get_session)):
    taken = session.exec(select(User).where(User.username == username)).first() is not None
    return {"available": not taken}


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(user_in: UserCreate, session: Session = Depends(get_session)):
    if session.exec(select(User).where(User.username == user_in.username)).first():
        raise HTTPException(status_code=400, detail="Username already taken")
    user = User(
        username=user_in.username,
        real_name=user_in.real_name,
        password_hash=get_password_hash(user_in.password),
        avatar=user_in.avatar or DEFAULT_AVATAR,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.username == form_data.username)).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.active:
        raise HTTPException(status_code=403, detail="User inactive")
    token = create_access_token({"sub": str(user.id)})
    return Token(access_token=token)


def get_current_user(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)):
    credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    user = session.get(User, int(user_id))
    if user is None:
        raise credentials_exception
    return user


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user
