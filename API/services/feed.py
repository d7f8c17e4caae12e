"""
Feed service - posts, comments and announcements.
"""

import logging
from typing import Iterable, List

from sqlalchemy.orm import Session

from core.exceptions import Forbidden, NotFound
from core.permissions import PermissionType, authorize
from database.models import Announcement, Comment, Post, Profile
from .base import SchoolServiceBase
from .notifications import NotificationService, NotificationType

logger = logging.getLogger(__name__)


class FeedService(SchoolServiceBase):

    def __init__(self, db: Session, school_id: int = None):
        super().__init__(db, school_id)
        self.notifications = NotificationService(db)

    def _school_profile_ids(self, profile_ids: Iterable[int]) -> List[int]:
        ids = list(dict.fromkeys(profile_ids))
        if not ids:
            return []
        rows = self.db.query(Profile.id).filter(
            Profile.id.in_(ids), Profile.school_id == self.school_id
        ).all()
        found = {r[0] for r in rows}
        return [i for i in ids if i in found]

    # ==================== POSTS ====================

    def list_posts(self, limit: int = 20, offset: int = 0) -> List[Post]:
        return self._q(Post).order_by(Post.id.desc()).offset(offset).limit(limit).all()

    def get_post(self, post_id: int) -> Post:
        post = self._q(Post).filter(Post.id == post_id).first()
        if not post:
            raise NotFound("Post not found")
        return post

    def create_post(self, author: Profile, content: str, mentions: List[int]) -> Post:
        mentioned = self._school_profile_ids(mentions)
        post = Post(school_id=self.school_id, author_id=author.id, content=content, mentions=mentioned)
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)

        self.notifications.notify_many(
            [pid for pid in mentioned if pid != author.id],
            NotificationType.MENTION,
            "You were mentioned",
            f"{author.full_name} mentioned you in a post",
            related_id=post.id,
        )
        return post

    def delete_post(self, profile: Profile, post_id: int):
        post = self.get_post(post_id)
        if post.author_id != profile.id and not authorize(profile, PermissionType.DELETE_ANY_POST).allowed:
            raise Forbidden("You can only delete your own posts")
        self.db.delete(post)
        self.db.commit()

    def add_comment(self, author: Profile, post_id: int, content: str, mentions: List[int]) -> Comment:
        post = self.get_post(post_id)
        mentioned = self._school_profile_ids(mentions)
        comment = Comment(
            school_id=post.school_id, post_id=post.id,
            author_id=author.id, content=content, mentions=mentioned,
        )
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)

        if post.author_id != author.id:
            self.notifications.notify(
                post.author_id, NotificationType.COMMENT, "New Comment",
                f"{author.full_name} commented on your post",
                related_id=post.id,
            )
        self.notifications.notify_many(
            [pid for pid in mentioned if pid not in (author.id, post.author_id)],
            NotificationType.MENTION,
            "You were mentioned",
            f"{author.full_name} mentioned you in a comment",
            related_id=post.id,
        )
        return comment

    # ==================== ANNOUNCEMENTS ====================

    def list_announcements(self) -> List[Announcement]:
        return self._q(Announcement).order_by(
            Announcement.is_pinned.desc(), Announcement.id.desc()
        ).all()

    def create_announcement(self, author: Profile, title: str, content: str,
                            is_pinned: bool = False) -> Announcement:
        announcement = Announcement(
            school_id=self.school_id, author_id=author.id,
            title=title, content=content, is_pinned=is_pinned,
        )
        self.db.add(announcement)
        self.db.commit()
        self.db.refresh(announcement)
        return announcement
