"""Command line interface for checking configuration loading"""
from . import get_settings, DEFAULTS
from pathlib import Path


def main():
    """Display loaded configuration"""
    settings = get_settings()

    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings.items():
        # Never echo database credentials
        if key == 'db_url':
            value = '***'
        print(f"{key}: {value}")

    # Save example configuration file
    examples_dir = Path("examples")
    examples_dir.mkdir(exist_ok=True)

    lines = ["[DEFAULT]"]
    lines.extend(f"{key} = {value}" for key, value in DEFAULTS.items())
    with open(examples_dir / "settings.conf.example", "w") as f:
        f.write("\n".join(lines) + "\n")

    print(f"\nWrote {examples_dir / 'settings.conf.example'}")

if __name__ == "__main__":
    main()
