"""
Script de seed para criar dados iniciais no banco.

Uso:
    python -m circulation.db.seed

Cria leitores, títulos e cópias de exemplo se ainda não existirem.
"""

import asyncio
import logging

from sqlalchemy import select

from circulation.db.session import async_session_factory
from circulation.models.book import BookCopy, BookTitle
from circulation.models.borrower import Borrower
from circulation.models.enums import CopyStatus

logger = logging.getLogger(__name__)

BORROWERS = [
    ("Ana Souza", "ana.souza@example.com", 5),
    ("Bruno Lima", "bruno.lima@example.com", 5),
    ("Carla Mendes", "carla.mendes@example.com", 2),
]

# (título, autor, quantidade de cópias)
TITLES = [
    ("Dom Casmurro", "Machado de Assis", 2),
    ("Grande Sertão: Veredas", "João Guimarães Rosa", 1),
    ("A Hora da Estrela", "Clarice Lispector", 1),
]


async def create_borrowers() -> None:
    """Cria os leitores de exemplo, ignorando emails já cadastrados."""
    async with async_session_factory() as db:
        for name, email, loan_limit in BORROWERS:
            result = await db.execute(select(Borrower).where(Borrower.email == email))
            if result.scalar_one_or_none():
                logger.info(f"Leitor já existe: {email}")
                continue
            db.add(Borrower(name=name, email=email, loan_limit=loan_limit))
            logger.info(f"Leitor criado: {email}")
        await db.commit()


async def create_titles() -> None:
    """Cria os títulos de exemplo com suas cópias AVAILABLE."""
    async with async_session_factory() as db:
        for title, author, copies in TITLES:
            result = await db.execute(select(BookTitle).where(BookTitle.title == title))
            if result.scalar_one_or_none():
                logger.info(f"Título já existe: {title}")
                continue

            book_title = BookTitle(title=title, author=author)
            db.add(book_title)
            await db.flush()

            for index in range(copies):
                db.add(BookCopy(
                    book_title_id=book_title.id,
                    location=f"Estante {index + 1}",
                    status=CopyStatus.AVAILABLE,
                ))
            logger.info(f"Título criado: {title} ({copies} cópia(s), ID: {book_title.id})")
        await db.commit()


async def main() -> None:
    """Executa todos os seeds."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    logger.info("Executando seeds...")
    await create_borrowers()
    await create_titles()
    logger.info("Seeds concluídos!")


if __name__ == "__main__":
    asyncio.run(main())
