import asyncio
from carbon_credit.config.settings import Settings
from carbon_credit.errors import CarbonCreditError
from carbon_credit.models import ClaimState, MediaFile
from carbon_credit.platform import CarbonCreditPlatform
import watchdog.observers
import watchdog.events
import logging
import sys
import os

HELP = """Commands:
  orgs                      list registered organizations
  requests [address]        list borrow requests
  borrow <seller> <amount>  ask an organization for credits
  approve <id>              approve a pending request
  decline <id>              decline a pending request
  claim                     submit a land reclamation claim
  exit                      quit"""

class CodeChangeHandler(watchdog.events.FileSystemEventHandler):
    def on_modified(self, event):
        if event.src_path.endswith('.py'):
            print("\nCode change detected. Restarting...")
            python = sys.executable
            os.execl(python, python, *sys.argv)

async def handle_command(platform, user_input: str) -> str:
    """Run one terminal command and return the text to show"""
    parts = user_input.split()
    command, args = parts[0].lower(), parts[1:]

    if command == "orgs":
        organizations = await platform.directory.list_organizations()
        if not organizations:
            return "No organizations registered."
        return "\n".join(
            f"- {org.name} ({org.address}) CarbonCoins: {org.balance}"
            + ("" if org.photo is None else " [photo]")
            for org in organizations
        )

    if command == "requests":
        requests = await platform.requests.list_requests(args[0] if args else None)
        if not requests:
            return "No requests found."
        return "\n".join(
            f"Request number {req.id}: {req.buyer} <- {req.potential_seller}, "
            f"{req.amount} CC, total price {platform.requests.quote(req)} CC, {req.status.label}"
            for req in requests
        )

    if command == "borrow" and len(args) == 2:
        request_id = await platform.requests.create_request(args[0], args[1])
        return f"Request {request_id} created successfully!"

    if command in ("approve", "decline") and len(args) == 1 and args[0].isdigit():
        status = await platform.requests.handle_request(int(args[0]), command == "approve")
        return f"Request {args[0]} {status.label.lower()} successfully!"

    return HELP

async def prompt_claim(platform) -> str:
    fields = {
        "coordinates_x": input("Coordinates X: "),
        "coordinates_y": input("Coordinates Y: "),
        "acres": input("Acres: "),
        "demanded_tokens": input("Requested Tokens: "),
        "project_name": input("Project Name: "),
        "project_details": input("Project Details: "),
    }
    photo_path = input("Project Photo path (blank for none): ").strip()
    evidence = MediaFile.from_path(photo_path) if photo_path else None

    result = await platform.claims.submit(fields, evidence)
    if result.state == ClaimState.APPROVED:
        return f"Claim {result.claim_id} approved !!, coins granted: {result.awarded_tokens}"
    return (f"Claim {result.claim_id} was recorded but is not approved yet: "
            f"{result.approval_error}")

async def interactive_loop(platform):
    print("\nCarbon Credit Interactive Mode")
    print("Type 'help' for commands, 'exit' to quit")
    print("--------------------------------")

    while True:
        try:
            user_input = input("\ncarbon > ").strip()

            if user_input.lower() in ['exit', 'quit']:
                print("Shutting down...")
                break

            if not user_input:
                continue
            if user_input.lower() == "claim":
                print(await prompt_claim(platform))
            else:
                print(await handle_command(platform, user_input))

        except KeyboardInterrupt:
            print("\nShutting down...")
            break
        except (CarbonCreditError, OSError) as e:
            print(f"Error: {e}")

async def main():
    # Set up file watcher in development
    if "--dev" in sys.argv:
        observer = watchdog.observers.Observer()
        observer.schedule(CodeChangeHandler(), path='carbon_credit', recursive=True)
        observer.start()
        print("Development mode: watching for code changes...")

    settings = Settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    platform = CarbonCreditPlatform(settings)
    await platform.initialize()
    await interactive_loop(platform)

if __name__ == "__main__":
    asyncio.run(main())
