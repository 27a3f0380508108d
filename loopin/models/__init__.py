"""Convenience exports for ORM models."""
from .block import Block
from .conversation import Conversation, ConversationParticipant
from .follow import Follow
from .friend_request import FriendRequest
from .message import Message
from .notification import Notification
from .post import CommentLike, Post, PostComment, PostLike
from .saved_post import SavedPost
from .user import User

__all__ = [
    "Block",
    "CommentLike",
    "Conversation",
    "ConversationParticipant",
    "Follow",
    "FriendRequest",
    "Message",
    "Notification",
    "Post",
    "PostComment",
    "PostLike",
    "SavedPost",
    "User",
]
