from dataclasses import dataclass, field


@dataclass
class CheckConfig:
    id: str
    command: str
    env: dict[str, str] = field(default_factory=dict)
    working_dir: str | None = None
    label: str | None = None


@dataclass
class SuiteConfig:
    checks: dict[str, CheckConfig]
    max_procs: int | None = None
    timeout: int | None = None
    tempdir: str | None = None

    def __iter__(self):
        for check_id in sorted(self.checks):
            yield self.checks[check_id]

    def __len__(self):
        return len(self.checks)

    def has_check(self, id: str) -> bool:
        return id in self.checks

    def get_check(self, id: str) -> CheckConfig:
        if not self.has_check(id):
            raise KeyError(id)

        return self.checks[id]

    def checks_ids(self) -> list[str]:
        return sorted(self.checks.keys())


class ConfigError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
