# src/routes/auth_fastapi.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from src import auth, database
from src.models.usuario import Usuario
from src.schemas import usuario as schemas_usuario


router = APIRouter(
    prefix="/api/v1/auth",
    tags=["Authentication"]
)

@router.post("/token", response_model=schemas_usuario.Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(database.get_db)):
    user = auth.get_user(db, email=form_data.username.strip().lower()) # Usamos email como username
    if not user or not user.hashed_password or not auth.verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou senha incorretos",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = auth.create_access_token(
        data={"sub": user.email, "role": user.role}
    )

    user_info = schemas_usuario.UsuarioRead.from_orm(user)
    return {"access_token": access_token, "token_type": "bearer", "user_info": user_info}

@router.get("/me", response_model=schemas_usuario.UsuarioRead)
async def read_users_me(current_user: Usuario = Depends(auth.get_current_active_user)):
    """
    Retorna os dados do usuário atualmente logado.
    """
    return current_user
