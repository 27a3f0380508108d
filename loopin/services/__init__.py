"""Convenience exports for service layer."""
from .auth_service import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    get_current_user,
    hash_password,
    is_operator,
    require_roles,
    verify_password,
)
from .block_service import block_user, get_blocked_users, is_blocked_either_way, is_user_blocked, unblock_user
from .email_service import EmailDeliveryError, send_signup_emails
from .conversation_service import (
    add_group_members,
    create_conversation,
    delete_group,
    delete_message,
    find_or_create_direct_conversation,
    get_conversation,
    get_conversation_messages,
    get_unread_messages_count,
    get_user_conversations,
    is_participant,
    leave_group,
    mark_messages_as_read,
    offline_replay_handlers,
    remove_group_member,
    send_message,
    serialize_conversation,
    share_post_in_dm,
    update_conversation_settings,
    update_member_role,
    validate_message_content,
)
from .follow_service import (
    FollowStats,
    get_follow_stats,
    get_followers,
    get_following,
    get_pending_requests_count,
    is_following,
    update_user_follow_status,
)
from .friend_request_service import (
    accept_friend_request,
    cancel_friend_request,
    check_friend_request_status,
    get_pending_friend_requests,
    reject_friend_request,
    send_friend_request,
)
from .network import (
    BackendOfflineError,
    NetworkState,
    NetworkStatus,
    check_backend_connectivity,
    execute_when_online,
    execute_with_retry,
    network_status,
    toggle_backend_network,
)
from .notification_service import (
    add_notification,
    get_notifications_for_user,
    get_unread_notifications_count,
    mark_all_notifications_as_read,
    mark_notification_as_read,
    mark_notifications_as_read_by_category_and_actor,
    notify_quietly,
)
from .offline_queue import (
    FlushResult,
    clear_offline_queue,
    flush_offline_queue,
    get_offline_queue,
    queue_offline_action,
)
from .post_service import (
    add_comment,
    add_post,
    delete_post,
    get_feed_posts_for_user,
    get_post,
    get_posts_by_ids,
    get_posts_by_user_id,
    serialize_post,
    toggle_comment_like,
    toggle_post_like,
)
from .realtime import StreamHub, conversation_stream, notification_stream
from .storage_service import (
    StorageConfigurationError,
    StorageUploadError,
    delete_object_by_url,
    upload_data_url,
    upload_file,
)
from .user_service import (
    create_user_profile,
    delete_user_account,
    get_all_users,
    get_saved_posts,
    get_user_profile,
    get_users_by_ids,
    is_username_taken,
    search_users,
    toggle_save_post,
    update_user_avatar,
    update_user_profile,
    validate_username,
)

__all__ = [
    "authenticate_user",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "is_operator",
    "require_roles",
    "hash_password",
    "verify_password",
    "EmailDeliveryError",
    "send_signup_emails",
    "block_user",
    "get_blocked_users",
    "is_blocked_either_way",
    "is_user_blocked",
    "unblock_user",
    "add_group_members",
    "create_conversation",
    "delete_group",
    "delete_message",
    "find_or_create_direct_conversation",
    "get_conversation",
    "get_conversation_messages",
    "get_unread_messages_count",
    "get_user_conversations",
    "is_participant",
    "leave_group",
    "mark_messages_as_read",
    "offline_replay_handlers",
    "remove_group_member",
    "send_message",
    "serialize_conversation",
    "share_post_in_dm",
    "update_conversation_settings",
    "update_member_role",
    "validate_message_content",
    "FollowStats",
    "get_follow_stats",
    "get_followers",
    "get_following",
    "get_pending_requests_count",
    "is_following",
    "update_user_follow_status",
    "accept_friend_request",
    "cancel_friend_request",
    "check_friend_request_status",
    "get_pending_friend_requests",
    "reject_friend_request",
    "send_friend_request",
    "BackendOfflineError",
    "NetworkState",
    "NetworkStatus",
    "check_backend_connectivity",
    "execute_when_online",
    "execute_with_retry",
    "network_status",
    "toggle_backend_network",
    "add_notification",
    "get_notifications_for_user",
    "get_unread_notifications_count",
    "mark_all_notifications_as_read",
    "mark_notification_as_read",
    "mark_notifications_as_read_by_category_and_actor",
    "notify_quietly",
    "FlushResult",
    "clear_offline_queue",
    "flush_offline_queue",
    "get_offline_queue",
    "queue_offline_action",
    "add_comment",
    "add_post",
    "delete_post",
    "get_feed_posts_for_user",
    "get_post",
    "get_posts_by_ids",
    "get_posts_by_user_id",
    "serialize_post",
    "toggle_comment_like",
    "toggle_post_like",
    "StreamHub",
    "conversation_stream",
    "notification_stream",
    "StorageConfigurationError",
    "StorageUploadError",
    "delete_object_by_url",
    "upload_data_url",
    "upload_file",
    "create_user_profile",
    "delete_user_account",
    "get_all_users",
    "get_saved_posts",
    "get_user_profile",
    "get_users_by_ids",
    "is_username_taken",
    "search_users",
    "toggle_save_post",
    "update_user_avatar",
    "update_user_profile",
    "validate_username",
]
