from pydantic import BaseModel, ConfigDict, Field


# --- User ---

class UserRegister(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6, max_length=128)


class UserLogin(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=128)


class UserUpdate(BaseModel):
    email: str | None = Field(None, min_length=3, max_length=255)
    username: str | None = Field(None, min_length=1, max_length=100)
    password: str | None = Field(None, min_length=6, max_length=128)
    image: str | None = Field(None, max_length=500)
    bio: str | None = None


class UserRegisterRequest(BaseModel):
    user: UserRegister


class UserLoginRequest(BaseModel):
    user: UserLogin


class UserUpdateRequest(BaseModel):
    user: UserUpdate


class UserView(BaseModel):
    email: str
    token: str | None = None
    username: str
    bio: str | None = None
    image: str | None = None


class UserResponse(BaseModel):
    user: UserView


# --- Profile ---

class ProfileView(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileResponse(BaseModel):
    profile: ProfileView


# --- Article ---

class ArticleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=300)
    description: str = Field("", max_length=1000)
    body: str = Field(min_length=1)
    tag_list: list[str] | None = Field(None, alias="tagList")


class ArticleUpdate(BaseModel):
    """Every field is optional; supplying none of them is rejected by the service."""

    title: str | None = Field(None, max_length=300)
    description: str | None = Field(None, max_length=1000)
    body: str | None = None


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class AuthorView(BaseModel):
    username: str
    bio: str
    image: str
    following: bool


class ArticleView(BaseModel):
    slug: str
    title: str
    description: str
    body: str
    tagList: list[str]
    createdAt: str
    updatedAt: str
    favorited: bool
    favoritesCount: int
    author: AuthorView


class ArticleResponse(BaseModel):
    article: ArticleView


class ArticleListResponse(BaseModel):
    articles: list[ArticleView]
    articlesCount: int


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


class CommentCreateRequest(BaseModel):
    comment: CommentCreate


class CommentView(BaseModel):
    id: int
    createdAt: str
    updatedAt: str
    body: str
    author: ProfileView


class CommentResponse(BaseModel):
    comment: CommentView


class CommentListResponse(BaseModel):
    comments: list[CommentView]
