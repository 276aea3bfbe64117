# forumcore/deps/forum.py
"""FastAPI providers for the forum components. Tests override `get_store`."""
import logging

from fastapi import Depends

from forumcore.config import MAX_PAGE_SIZE
from forumcore.database import AsyncSessionLocal
from forumcore.services.association_manager import AssociationManager
from forumcore.services.cascade_deleter import CascadeDeleter
from forumcore.services.like_toggle import LikeToggle
from forumcore.services.pagination import PaginationGate
from forumcore.services.thread_reader import ThreadReader
from forumcore.services.thread_writer import ThreadWriter
from forumcore.store import ForumStore

_store = ForumStore(AsyncSessionLocal, logger=logging.getLogger("forumcore.store"))


def get_store() -> ForumStore:
    return _store


def get_thread_reader(store: ForumStore = Depends(get_store)) -> ThreadReader:
    return ThreadReader(
        store,
        pagination=PaginationGate(max_limit=MAX_PAGE_SIZE, logger=logging.getLogger("forumcore.pagination")),
        logger=logging.getLogger("forumcore.thread_reader"),
    )


def get_thread_writer(store: ForumStore = Depends(get_store)) -> ThreadWriter:
    return ThreadWriter(store, logger=logging.getLogger("forumcore.thread_writer"))


def get_like_toggle(store: ForumStore = Depends(get_store)) -> LikeToggle:
    return LikeToggle(store, logger=logging.getLogger("forumcore.like_toggle"))


def get_association_manager(store: ForumStore = Depends(get_store)) -> AssociationManager:
    return AssociationManager(store, logger=logging.getLogger("forumcore.association_manager"))


def get_cascade_deleter(store: ForumStore = Depends(get_store)) -> CascadeDeleter:
    return CascadeDeleter(store, logger=logging.getLogger("forumcore.cascade_deleter"))
