import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SeedPair",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("player_id", models.CharField(max_length=64, unique=True)),
                ("server_seed", models.CharField(max_length=64)),
                ("server_seed_hash", models.CharField(db_index=True, max_length=64)),
                ("client_seed", models.CharField(max_length=128)),
                ("nonce", models.PositiveBigIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="RevealedSeedPair",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("player_id", models.CharField(db_index=True, max_length=64)),
                ("server_seed", models.CharField(max_length=64)),
                ("server_seed_hash", models.CharField(max_length=64, unique=True)),
                ("client_seed", models.CharField(max_length=128)),
                ("final_nonce", models.PositiveBigIntegerField()),
                ("revealed_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-revealed_at", "-id"],
                "indexes": [
                    models.Index(fields=["player_id", "revealed_at"], name="mines_reveal_player_at_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MinesRound",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("player_id", models.CharField(db_index=True, max_length=64)),
                ("server_seed_hash", models.CharField(max_length=64)),
                ("client_seed", models.CharField(max_length=128)),
                ("nonce", models.PositiveBigIntegerField()),
                ("board_size", models.PositiveIntegerField(default=25)),
                ("mine_count", models.PositiveIntegerField()),
                ("mine_positions", models.JSONField(default=list)),
                ("revealed_tiles", models.JSONField(default=list)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("lost", "Lost"), ("cashed_out", "Cashed Out")],
                        db_index=True,
                        default="active",
                        max_length=16,
                    ),
                ),
                ("current_multiplier", models.FloatField(default=1.0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["player_id", "created_at"], name="mines_round_player_at_idx"),
                    models.Index(fields=["player_id", "status"], name="mines_round_player_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("server_seed_hash", "nonce"), name="mines_round_unique_seed_nonce"),
                ],
            },
        ),
    ]
