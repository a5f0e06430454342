"""Sesiones de QA locales para la capa de datos de mercado."""

from __future__ import annotations

import nox

SOURCE_DIRS = ("shared", "infrastructure", "services", "tests")

nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = ("lint", "typecheck", "tests", "security")


def _install_project(session: nox.Session, *extra: str) -> None:
    """Instala el paquete en modo editable junto con dependencias extra."""

    session.install("-e", ".[test]")
    if extra:
        session.install(*extra)


@nox.session
def lint(session: nox.Session) -> None:
    """Ejecuta flake8 sobre los paquetes del proyecto."""

    session.install("flake8>=7.0.0")
    session.run("flake8", "--max-line-length=120", *SOURCE_DIRS)


@nox.session
def typecheck(session: nox.Session) -> None:
    """Valida los tipos usando mypy."""

    _install_project(session, "mypy>=1.11.0", "types-requests")
    session.run("mypy", "--ignore-missing-imports", "shared", "infrastructure", "services")


@nox.session
def tests(session: nox.Session) -> None:
    """Ejecuta la suite de pytest con cobertura."""

    _install_project(session)
    session.run(
        "pytest",
        "--cov=shared",
        "--cov=infrastructure",
        "--cov=services",
        "--cov-report=term-missing",
    )


@nox.session
def security(session: nox.Session) -> None:
    """Ejecuta verificaciones de seguridad con bandit y pip-audit."""

    _install_project(session, "bandit>=1.7.9", "pip-audit>=2.7.3")
    session.run("bandit", "-q", "-r", "shared", "infrastructure", "services")
    session.run("pip-audit")
