"""Convenience exports for schema layer."""
from .auth import AuthResponse, LoginRequest, RegisterRequest
from .blocks import BlockListResponse, BlockStatusResponse
from .conversations import (
    MESSAGE_CONTENT_MODELS,
    AttachmentContent,
    ConversationCreate,
    ConversationListResponse,
    ConversationResponse,
    ConversationSettingsUpdate,
    DirectConversationRequest,
    GroupMembersRequest,
    LastMessagePreview,
    LocationShareContent,
    MemberRoleUpdate,
    MessageListResponse,
    MessageResponse,
    MessageSendRequest,
    ProfileShareContent,
    QueuedActionResponse,
    SharePostRequest,
    UnreadCountResponse,
)
from .follow import FollowActionRequest, FollowActionResponse, FollowStatsResponse, PendingCountResponse
from .friend_requests import FriendRequestListResponse, FriendRequestResponse, FriendRequestStatusResponse
from .notifications import (
    CategoryReadRequest,
    NotificationListResponse,
    NotificationResponse,
    NotificationSummaryResponse,
)
from .posts import (
    CommentCreate,
    CommentResponse,
    LikeToggleResponse,
    MediaItem,
    PostCreate,
    PostListResponse,
    PostResponse,
)
from .system import (
    FlushResponse,
    NetworkStatusResponse,
    NetworkToggleRequest,
    OfflineActionResponse,
    OfflineQueueResponse,
)
from .users import (
    AvatarUpdateRequest,
    SaveToggleResponse,
    UserListResponse,
    UsernameAvailabilityResponse,
    UserProfileResponse,
    UserSummary,
    UserUpdateRequest,
)

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "RegisterRequest",
    "BlockListResponse",
    "BlockStatusResponse",
    "MESSAGE_CONTENT_MODELS",
    "AttachmentContent",
    "ConversationCreate",
    "ConversationListResponse",
    "ConversationResponse",
    "ConversationSettingsUpdate",
    "DirectConversationRequest",
    "GroupMembersRequest",
    "LastMessagePreview",
    "LocationShareContent",
    "MemberRoleUpdate",
    "MessageListResponse",
    "MessageResponse",
    "MessageSendRequest",
    "ProfileShareContent",
    "QueuedActionResponse",
    "SharePostRequest",
    "UnreadCountResponse",
    "FollowActionRequest",
    "FollowActionResponse",
    "FollowStatsResponse",
    "PendingCountResponse",
    "FriendRequestListResponse",
    "FriendRequestResponse",
    "FriendRequestStatusResponse",
    "CategoryReadRequest",
    "NotificationListResponse",
    "NotificationResponse",
    "NotificationSummaryResponse",
    "CommentCreate",
    "CommentResponse",
    "LikeToggleResponse",
    "MediaItem",
    "PostCreate",
    "PostListResponse",
    "PostResponse",
    "FlushResponse",
    "NetworkStatusResponse",
    "NetworkToggleRequest",
    "OfflineActionResponse",
    "OfflineQueueResponse",
    "AvatarUpdateRequest",
    "SaveToggleResponse",
    "UserListResponse",
    "UsernameAvailabilityResponse",
    "UserProfileResponse",
    "UserSummary",
    "UserUpdateRequest",
]
