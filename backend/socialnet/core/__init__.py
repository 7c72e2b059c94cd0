from .errors import AlreadyExists, Forbidden, InvalidOperation, NotFound, SocialError
from .paging import DEFAULT_LIMIT, Page
from .content import (
    LikeState,
    create_comment,
    create_post,
    delete_comment,
    delete_post,
    get_comment,
    get_post,
    list_comments,
    list_posts,
    list_replies,
    list_user_posts,
    toggle_like,
    update_comment,
    update_post,
)
from .social import follow, follow_counts, list_followers, list_following, unfollow
from .users import find_by_email, get_profile, list_users, public_user, register_user, update_profile
