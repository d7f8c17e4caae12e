"""
Community feed: posts, comments and announcements.
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, Text,
    ForeignKey, JSON
)
from sqlalchemy.orm import relationship

from ..base import SchoolBaseModel


class Post(SchoolBaseModel):
    __tablename__ = 'posts'

    author_id = Column(Integer, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    content = Column(Text, nullable=False)
    mentions = Column(JSON, default=list, nullable=False)

    author = relationship("Profile")
    comments = relationship(
        "Comment", back_populates="post",
        cascade="all, delete-orphan", order_by="Comment.id"
    )


class Comment(SchoolBaseModel):
    __tablename__ = 'comments'

    post_id = Column(Integer, ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    content = Column(Text, nullable=False)
    mentions = Column(JSON, default=list, nullable=False)

    post = relationship("Post", back_populates="comments")
    author = relationship("Profile")


class Announcement(SchoolBaseModel):
    __tablename__ = 'announcements'

    author_id = Column(Integer, ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    is_pinned = Column(Boolean, default=False, nullable=False)
