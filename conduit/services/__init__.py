# Services package.
#
# The engine proper, leaves first:
#
#   slugs           title -> slug transform and collision checks
#   tag_codec       fail-soft encode/decode of the stored tag list
#   follow_graph    batched "viewer follows author" resolution, follow/unfollow
#   favorites       favorite relation plus the denormalized counter
#   feed            filtered, paginated raw article rows and counts
#   projector       raw rows + resolved flags -> response view models
#
# and the operation surface built on top of it:
#
#   article_service   create/update/delete/get/list/favorite for Article
#   comment_service   add/list/delete Comment
#   user_service      register/login/account, profiles, follow/unfollow
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  They raise ``conduit.errors`` types and never
# build HTTP responses.
