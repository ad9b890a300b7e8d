import os

from src.database import SessionLocal, Base, engine
from src.auth import get_password_hash
from src.models.usuario import Usuario
from src.models.configuracao import ConfiguracaoSistema

# Importação dos outros modelos para garantir que o SQLAlchemy registre tudo
from src.models.evento import Evento
from src.models.inscricao import Inscricao
from src.models.pagamento_asaas import PagamentoAsaas
from src.models.transferencia import SolicitacaoTransferencia
from src.models.aviso import Aviso

def create_first_user(session_factory=SessionLocal):
    """
    Cria o administrador inicial (ADMIN_EMAIL / ADMIN_PASSWORD) e a linha de
    configurações do sistema, se ainda não existirem.
    """
    email = os.getenv("ADMIN_EMAIL", "admin@inscricoes.com.br").strip().lower()
    password = os.getenv("ADMIN_PASSWORD")
    db = session_factory()

    try:
        if not db.query(ConfiguracaoSistema).first():
            db.add(ConfiguracaoSistema(enabled_modules={"transfers": False, "notifications": True}, transfer_fee=0))
            print("Configurações do sistema criadas (transferências desabilitadas, taxa 0).")

        user = db.query(Usuario).filter(Usuario.email == email).first()

        if user:
            print(f"ℹ️ Usuário administrador '{email}' já existe.")
        elif not password:
            print("ADMIN_PASSWORD não definido; administrador não criado.")
        else:
            print("Criando primeiro usuário administrador...")
            db.add(Usuario(
                email=email,
                nome="Admin do Sistema",
                hashed_password=get_password_hash(password),
                role="admin"
            ))
            print(f"✅ Usuário {email} criado com sucesso!")
        db.commit()
    except Exception as e:
        print(f"❌ Erro ao criar usuário: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    create_first_user()
