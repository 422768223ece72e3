# tilecut

An offline tile builder for large minimap images. It cuts an image into
fixed-size tiles. It can also build a 1/2 downscaled pyramid. It writes a
`manifest.json` that describes the source, the grid, the naming scheme and,
if you ask for it, a world-space mapping.

PNG, JPEG, WebP and TIFF images are accepted as input.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install .[test]
pytest
```

This installs the `tilecut` command. `tilecut --version` prints the version.
A command that fails prints an error on stderr and exits with status 1. The
error has a summary, a "Try:" list of suggestions and, where known, details.
A usage error exits with status 2.

## Commands

### inspect

Reads the image dimensions and previews the cut plan. No files are written.

```
tilecut inspect map.png --tile-size 256
tilecut inspect map.png --tile-width 512 --tile-height 256 --edge crop --json
tilecut inspect map.png --tile-size 256 --max-level 2 --json
```

The report lists these things:

- the source size
- the tile size and edge mode
- the grid and tile count of every level
- the estimated RGBA memory
- the backend that `auto` would pick

With `--json` the report is printed as JSON.

### cut

Cuts tiles into an output directory. The directory contains:

- `manifest.json`
- a `tiles/` tree
- `tiles.ndjson`, if an index is enabled
- `preview/overview.png`, with `--overview PX`
- `.tilecut/plan.json` and `.tilecut/state.json`, used to resume a build

```
tilecut cut map.png --out out --tile-size 256
tilecut cut map.png --out out --max-level 2
tilecut cut map.png --out out --overview 1024
tilecut cut map.png --out out --world-origin=0,0 --units-per-pixel 1
tilecut cut map.png --out out --manifest full --tile-index ndjson --skip-empty
tilecut cut map.png --out out --format jpeg --flatten-alpha 0,0,0,255
```

Options:

- **Tile size.** `--tile-size` sets both edges. `--tile-width` and
  `--tile-height` override it. The default is 256.
- **Edge handling** (`--edge`).
  - `pad` is the default. It keeps every tile at full size and fills the
    unused pixels with `--pad-color R,G,B,A`, which defaults to `0,0,0,0`.
  - `crop` writes smaller edge tiles.
  - `skip` leaves partial edge tiles out of the grid.
- **Format** (`--format`).
  - `png` is the default.
  - `jpeg` uses `--quality`, 1 to 100, default 90.
  - `webp` is written lossless.
  - JPEG tiles must be opaque unless you pass `--flatten-alpha R,G,B,A`. That
    option gives the background to composite onto.
- **Layout** (`--layout`).
  - `flat` writes `tiles/x0000_y0000.png`.
  - `sharded` writes `tiles/y0000/x0000.png`.
  - With `--max-level` above 0, every level gets a `l0000/` directory.
  - Coordinates are zero-padded to at least four digits.
- **Pyramid.** `--max-level N` builds levels 0 to N. Level *n* has scale
  1/2^n. Each level's size is rounded and never smaller than 1x1. Downscaled
  levels are resized with Lanczos filtering.
- **Manifest** (`--manifest`).
  - `compact` stores the rules and statistics.
  - `full` lists every tile record.
  - `--tile-index ndjson` writes one JSON line for each tile that was written.
  - When you combine `compact` with `--skip-empty`, the index is turned on
    automatically.
- **Empty tiles.** `--skip-empty` skips a tile when no pixel has alpha above
  `--empty-alpha-threshold`, which defaults to 0. The threshold is accepted
  only together with `--skip-empty`.
- **World mapping.** `--world-origin X,Y` and `--units-per-pixel VALUE` must
  be given together. `--y-axis down|up` sets the direction of Y.
- **Existing output.**
  - Without a flag, an existing output directory is an error.
  - `--overwrite` builds into a temporary sibling directory and then replaces
    the output directory.
  - `--resume` reuses the output directory and writes only the missing files.
    The stored build settings must match the request.
  - The two flags cannot be used together.
- **Backend** (`--backend`).
  - `image` decodes the whole source into memory.
  - `vips` crops and resizes through the external `vips` command. It is used
    only when the `TILECUT_ENABLE_VIPS` environment variable is set to `1`,
    `true`, `yes` or `on`, and `vips --version` runs.
  - `auto` is the default. It picks `image` while the estimated RGBA size fits
    in `--max-in-memory-mib`, default 2048, and `vips` beyond that.
  - `--threads N` sets the number of worker threads. The default is the CPU
    count.
- **Dry run.** `--dry-run` prints the resolved plan and backend and writes
  nothing.

### stitch

Rebuilds one level as a single PNG, so that you can check the result:

```
tilecut stitch out/manifest.json --out verify.png
tilecut stitch out/manifest.json --out level1.png --level 1
```

The output path must end in `.png`. Skipped tiles stay transparent.

### validate

Checks several things:

- the manifest metadata: levels, scales, and grid and naming consistency
- the tile counts, derived from the manifest, its tile list or `tiles.ndjson`
- that every tile file exists
- the tile dimensions

```
tilecut validate out/manifest.json
tilecut validate out/manifest.json --json
```

A failed validation lists every problem it found and exits with status 1.

## Using it from Python

Each command has a `run(args)` function in `tilecut.commands.inspect`,
`tilecut.commands.cut`, `tilecut.commands.stitch` and
`tilecut.commands.validate`. It takes the matching dataclass from
`tilecut.options`: `InspectArgs`, `CutArgs`, `StitchArgs` or `ValidateArgs`.

Some lower-level functions are also available:

- `tilecut.plan.build_cut_plan` and `tilecut.plan.compute_grid` plan a cut.
- `tilecut.manifest.manifest_from_dict` reads a manifest.
- `tilecut.validation.validate_manifest_path` returns a `ValidationReport`.

`tilecut.cli.main(argv)` runs a command line and returns the exit code.

## What it does not do

- tilecut does not rebuild missing tiles during `validate`.
- `stitch` writes PNG only.
- Without a `vips` installation, and without `TILECUT_ENABLE_VIPS` set, images
  too large for the memory budget cannot be cut with `--backend auto`. For such
  images, pass `--backend image` or raise `--max-in-memory-mib`.