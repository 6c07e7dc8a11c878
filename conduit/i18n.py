"""
Message localization for error keys.

The engine raises ``ConduitError`` subclasses carrying a message key; the
HTTP boundary asks the ``MessageCatalog`` installed on ``app.state`` to
turn that key into text for the caller's ``Accept-Language``.  Nothing
inside ``conduit.services`` imports this module.
"""
import logging

logger = logging.getLogger(__name__)

# Locale aliases accepted in Accept-Language that map onto a catalog locale.
_ALIASES = {"ja": "jp"}

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "auth.authentication_required": "Authentication required",
        "auth.invalid_token": "Invalid or expired token",
        "auth.invalid_credentials": "Invalid email or password",
        "user.not_found": "User not found",
        "user.email_in_use": "Email already in use",
        "user.username_taken": "Username already taken",
        "article.not_found": "Article not found",
        "article.title_in_use": "Article with this title already exists",
        "article.title_invalid": "Title must contain at least one letter or digit",
        "article.no_fields": "At least one field must be provided",
        "article.not_author": "You are not the author of this article",
        "favorite.already_favorited": "You have already favorited this article",
        "favorite.not_favorited": "You have not favorited this article",
        "follow.self": "You cannot follow yourself",
        "follow.already_following": "You are already following {username}",
        "follow.not_following": "You are not following {username}",
        "comment.not_found": "Comment not found",
        "comment.not_author": "You are not allowed to delete this comment",
    },
    "vi": {
        "auth.authentication_required": "Yêu cầu xác thực",
        "auth.invalid_token": "Token không hợp lệ hoặc đã hết hạn",
        "auth.invalid_credentials": "Email hoặc mật khẩu không đúng",
        "user.not_found": "Không tìm thấy người dùng",
        "user.email_in_use": "Email đã được sử dụng",
        "user.username_taken": "Tên người dùng đã tồn tại",
        "article.not_found": "Không tìm thấy bài viết",
        "article.title_in_use": "Bài viết với tiêu đề này đã tồn tại",
        "article.title_invalid": "Tiêu đề phải chứa ít nhất một chữ cái hoặc chữ số",
        "article.no_fields": "Cần cung cấp ít nhất một trường",
        "article.not_author": "Bạn không phải là tác giả của bài viết này",
        "favorite.already_favorited": "Bạn đã yêu thích bài viết này",
        "favorite.not_favorited": "Bạn chưa yêu thích bài viết này",
        "follow.self": "Bạn không thể tự theo dõi chính mình",
        "follow.already_following": "Bạn đã theo dõi {username}",
        "follow.not_following": "Bạn chưa theo dõi {username}",
        "comment.not_found": "Không tìm thấy bình luận",
        "comment.not_author": "Bạn không được phép xóa bình luận này",
    },
    "jp": {
        "auth.authentication_required": "認証が必要です",
        "auth.invalid_token": "トークンが無効か期限切れです",
        "auth.invalid_credentials": "メールアドレスまたはパスワードが正しくありません",
        "user.not_found": "ユーザーが見つかりません",
        "user.email_in_use": "このメールアドレスは既に使用されています",
        "user.username_taken": "このユーザー名は既に使用されています",
        "article.not_found": "記事が見つかりません",
        "article.title_in_use": "このタイトルの記事は既に存在します",
        "article.title_invalid": "タイトルには英数字を1文字以上含めてください",
        "article.no_fields": "少なくとも1つの項目を指定してください",
        "article.not_author": "この記事の作成者ではありません",
        "favorite.already_favorited": "この記事は既にお気に入りに登録されています",
        "favorite.not_favorited": "この記事はお気に入りに登録されていません",
        "follow.self": "自分自身をフォローすることはできません",
        "follow.already_following": "既に{username}をフォローしています",
        "follow.not_following": "{username}をフォローしていません",
        "comment.not_found": "コメントが見つかりません",
        "comment.not_author": "このコメントを削除する権限がありません",
    },
}


class MessageCatalog:
    """Resolve ``(key, locale)`` pairs to display text."""

    def __init__(self, messages: dict[str, dict[str, str]], fallback: str = "en") -> None:
        self._messages = messages
        self.fallback = fallback

    def negotiate(self, accept_language: str | None) -> str:
        """
        Pick the best supported locale from an ``Accept-Language`` header.

        Entries are ranked by their ``q`` weight (default 1.0); region
        subtags are ignored, so ``vi-VN`` selects ``vi``.
        """
        if not accept_language:
            return self.fallback

        candidates: list[tuple[float, int, str]] = []
        for position, part in enumerate(accept_language.split(",")):
            lang, _, params = part.strip().partition(";")
            weight = 1.0
            if params.strip().startswith("q="):
                try:
                    weight = float(params.strip()[2:])
                except ValueError:
                    weight = 0.0
            primary = lang.strip().lower().split("-")[0]
            primary = _ALIASES.get(primary, primary)
            if primary in self._messages and weight > 0:
                candidates.append((-weight, position, primary))

        if not candidates:
            return self.fallback
        return min(candidates)[2]

    def translate(self, key: str, locale: str | None = None, **params) -> str:
        table = self._messages.get(locale or self.fallback, {})
        template = table.get(key) or self._messages.get(self.fallback, {}).get(key)
        if template is None:
            logger.warning("Missing message for key=%r locale=%r", key, locale)
            return key
        try:
            return template.format(**params)
        except (KeyError, IndexError):
            return template
