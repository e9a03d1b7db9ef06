import json
import yaml

def fmt_table(rows):
    if not rows:
        return ""
    widths = [max(len(str(c)) for c in col) for col in zip(*rows)]
    def line(cells): return "  ".join(str(c).ljust(w) for c, w in zip(cells, widths)).rstrip()
    out = [line(rows[0]), "  ".join("-"*w for w in widths)]
    out += [line(r) for r in rows[1:]]
    return "\n".join(out)

def _flatten(doc, prefix=""):
    for k, v in doc.items():
        key = f"{prefix}{k}"
        if isinstance(v, dict):
            yield from _flatten(v, key + ".")
        elif isinstance(v, (list, tuple)):
            yield key, ", ".join(str(i) for i in v)
        elif v is None:
            yield key, ""
        else:
            yield key, str(v).lower() if isinstance(v, bool) else v

def render(doc, outfmt) -> str:
    if outfmt == "yaml":
        return yaml.safe_dump(doc, sort_keys=False).rstrip("\n")
    if outfmt == "table":
        return fmt_table([["FIELD", "VALUE"], *([k, v] for k, v in _flatten(doc))])
    return json.dumps(doc, indent=2)

def output(doc, outfmt):
    print(render(doc, outfmt))
