from django.core.management.base import BaseCommand, CommandError

from mines.provably_fair import InvalidParameter, verify_round
from mines.services import FairnessError, verify_mines_round


class Command(BaseCommand):
    help = "Verify a Mines round from a stored round id or from revealed seeds"

    def add_arguments(self, parser):
        parser.add_argument("--round-id", help="Verify a stored round")
        parser.add_argument("--server-seed")
        parser.add_argument("--server-seed-hash")
        parser.add_argument("--client-seed")
        parser.add_argument("--nonce", type=int)
        parser.add_argument("--board-size", type=int, default=25)
        parser.add_argument("--mine-count", type=int)
        parser.add_argument(
            "--positions",
            default="",
            help="Comma separated mine positions to check, e.g. 5,15,19",
        )

    def handle(self, *args, **options):
        if options["round_id"]:
            result = self._verify_stored(options["round_id"])
        else:
            result = self._verify_raw(options)

        self.stdout.write(f"  computed hash:   {result['computed_hash']}")
        self.stdout.write(f"  hash matches:    {result['hash_matches']}")
        self.stdout.write(f"  positions:       {result['regenerated_positions']}")
        self.stdout.write(f"  positions match: {result['positions_match']}")

        if result["verified"]:
            self.stdout.write(self.style.SUCCESS("Round is provably fair."))
        else:
            self.stdout.write(self.style.ERROR("Verification failed."))

    def _verify_stored(self, round_id):
        try:
            return verify_mines_round(round_id)
        except FairnessError as e:
            raise CommandError(str(e))

    def _verify_raw(self, options):
        required = ["server_seed", "server_seed_hash", "client_seed", "nonce", "mine_count"]
        missing = [f"--{name.replace('_', '-')}" for name in required if options[name] is None]
        if missing:
            raise CommandError(f"Missing arguments: {', '.join(missing)}")

        try:
            positions = [int(p) for p in options["positions"].split(",") if p.strip()]
        except ValueError:
            raise CommandError("--positions must be a comma separated list of integers")

        try:
            result = verify_round(
                options["server_seed"],
                options["client_seed"],
                options["nonce"],
                options["board_size"],
                options["mine_count"],
                positions,
                commitment_hash=options["server_seed_hash"],
            )
        except InvalidParameter as e:
            raise CommandError(str(e))

        return result.as_dict()
