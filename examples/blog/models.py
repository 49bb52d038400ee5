"""
Blog example models.

Compile with:

    schemaforge generate -m examples/blog/models.py:register --stdout

or from inside this directory, where ``schemaforge.toml`` picks the dialect:

    schemaforge generate -m models.py:register
"""

from schemaforge import FieldSpec, ModelSpec, RelationSpec


def _id() -> FieldSpec:
    return FieldSpec(name="id", type="integer", primary_key=True, auto_increment=True)


USER = ModelSpec(
    name="User",
    fields=[
        _id(),
        FieldSpec(
            name="email",
            type="email",
            required=True,
            unique=True,
            validation=[{"kind": "maxLength", "value": 120}],
        ),
        FieldSpec(name="displayName", type="string"),
    ],
    relations=[
        RelationSpec(name="posts", kind="hasMany", target="Post", inverse="author"),
    ],
)

POST = ModelSpec(
    name="Post",
    module="content",
    fields=[
        _id(),
        FieldSpec(name="title", type="string", required=True),
        FieldSpec(name="body", type="text"),
        FieldSpec(name="published", type="boolean", default=False, indexed=True),
    ],
    relations=[
        RelationSpec(
            name="author",
            kind="belongsTo",
            target="User",
            required=True,
            inverse="posts",
            on_delete="Cascade",
        ),
        RelationSpec(name="tags", kind="manyToMany", target="Tag"),
    ],
)

TAG = ModelSpec(
    name="Tag",
    module="content",
    fields=[
        _id(),
        FieldSpec(name="label", type="string", required=True, unique=True),
    ],
    relations=[
        RelationSpec(name="posts", kind="manyToMany", target="Post"),
    ],
)

MODELS = [USER, POST, TAG]


def register(builder) -> None:
    builder.register_many(MODELS)
