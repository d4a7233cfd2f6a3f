from tortoise import fields, models


class Deployment(models.Model):
    """
    A provisioned contract configuration.

    (label, content_hash) identifies one provisioning call; repeating it is
    a no-op.
    """
    id = fields.IntField(pk=True)

    label = fields.CharField(max_length=64, unique=True)
    kind = fields.CharField(max_length=32)
    content_hash = fields.CharField(max_length=64)
    params = fields.JSONField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "deployments"
