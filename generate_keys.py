import argparse

from rndc.keyfile import format_key_clause, generate_secret

# Quick one-off keygen, in the spirit of rndc-confgen -a.
# - Secret length matches the digest size of the chosen algorithm.
# - Prints a key clause; paste it into named.conf and rndc.key (or pass the
#   secret with -y / RNDC_SECRET).

p = argparse.ArgumentParser(description="Print a fresh rndc key clause.")
p.add_argument("-a", "--algorithm", default="hmac-sha256")
p.add_argument("-k", "--keyname", default="rndc-key")
args = p.parse_args()

print(format_key_clause(args.keyname, args.algorithm, generate_secret(args.algorithm)), end="")
