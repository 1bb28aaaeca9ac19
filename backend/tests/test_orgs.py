from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from moedinha.db.base import Base
import moedinha.models  # noqa: F401
from moedinha.models.account import Account
from moedinha.models.audit import AuditLog
from moedinha.models.enums import MemberRole
from moedinha.models.org import Org, OrgMember
from moedinha.models.user import User
from moedinha.services.errors import NOT_AUTHORIZED, STORE, VALIDATION, OperationError
from moedinha.services.orgs import CreatedOrg, create_organization, get_active_org_id, to_slug


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _user(db: Session, email: str = "ana@example.com") -> User:
    user = User(email=email, full_name="Ana")
    db.add(user)
    db.flush()
    return user


def test_slug_strips_accents_and_punctuation() -> None:
    assert to_slug("Família São João") == "familia-sao-joao"
    assert to_slug("  Casa   & Cia!! ") == "casa-cia"
    assert to_slug("a -- b") == "a-b"


def test_create_organization_bootstraps_member_and_account() -> None:
    db = _session()
    user = _user(db)

    created = create_organization(db, user_id=user.id, name="  Família São João ")

    assert isinstance(created, CreatedOrg)
    assert created.slug == "familia-sao-joao"
    org = db.get(Org, created.org_id)
    assert org.name == "Família São João"

    member = db.scalar(select(OrgMember).where(OrgMember.org_id == created.org_id))
    assert member.user_id == user.id
    assert member.role == MemberRole.admin

    accounts = db.scalars(select(Account).where(Account.org_id == created.org_id)).all()
    assert [(account.name, account.currency) for account in accounts] == [("Conta Principal", "BRL")]

    audit = db.scalar(select(AuditLog).where(AuditLog.action == "org.create"))
    assert audit.entity_id == str(created.org_id)
    assert get_active_org_id(db, user.id) == created.org_id


def test_explicit_slug_is_normalized() -> None:
    db = _session()
    user = _user(db)
    created = create_organization(db, user_id=user.id, name="Casa", slug="Minha Casa")
    assert created.slug == "minha-casa"


def test_duplicate_slug_is_a_store_error() -> None:
    db = _session()
    user = _user(db)
    assert isinstance(create_organization(db, user_id=user.id, name="Casa Azul"), CreatedOrg)
    db.commit()

    duplicate = create_organization(db, user_id=user.id, name="Casa  Azul")

    assert isinstance(duplicate, OperationError)
    assert duplicate.code == STORE
    assert db.scalar(select(Org).where(Org.slug == "casa-azul")) is not None


def test_blank_name_and_missing_user_are_rejected() -> None:
    db = _session()

    anonymous = create_organization(db, user_id=None, name="Casa")
    assert isinstance(anonymous, OperationError) and anonymous.code == NOT_AUTHORIZED

    user = _user(db)
    blank = create_organization(db, user_id=user.id, name="   ")
    assert isinstance(blank, OperationError) and blank.code == VALIDATION


def test_active_org_is_first_membership() -> None:
    db = _session()
    user = _user(db)
    first = create_organization(db, user_id=user.id, name="Primeira")
    create_organization(db, user_id=user.id, name="Segunda")

    assert get_active_org_id(db, user.id) == first.org_id
    assert get_active_org_id(db, user.id + 1) is None
