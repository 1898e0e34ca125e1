# scripts/create_coupon.py
# Uso:
#   python scripts/create_coupon.py --trials 5 --max-uses 50 --note "Feria"
#   python scripts/create_coupon.py --plan monthly --unlimited-uses --expires 2026-12-31
import argparse
import sys

from vivasmart import create_app
from vivasmart.errors import VivaSmartError
from vivasmart.services.coupons import create_coupon


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Crear un cupón VivaSmart")
    p.add_argument("--code", help="código fijo (por defecto VS-XXXXXXXX aleatorio)")
    p.add_argument("--trials", type=int, default=0, help="pruebas que suma (0 = acceso ilimitado)")
    p.add_argument("--plan", choices=["one_time", "monthly"], default="one_time")
    p.add_argument("--max-uses", type=int, default=100)
    p.add_argument("--unlimited-uses", action="store_true")
    p.add_argument("--expires", help="fecha ISO-8601")
    p.add_argument("--note")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    data = {
        "code": args.code,
        "trialGrant": args.trials,
        "planGrant": args.plan,
        "maxUses": None if args.unlimited_uses else args.max_uses,
        "expiryDate": args.expires,
        "note": args.note,
    }

    app = create_app()
    with app.app_context():
        try:
            coupon = create_coupon(data, created_by="cli")
        except VivaSmartError as e:
            print(f"[X] {e.message}")
            return 1
        print(f"[OK] {coupon.code} max_uses={coupon.max_uses} trial_grant={coupon.trial_grant} plan={coupon.plan_grant}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
