# upktools

Command-line tools and a small library for Unreal Engine 3 package files
(`.upk`). They print the header, list objects, dump the name table and
extract objects to disk.

Packages compressed with LZO are decompressed in place before they are read.
The original file is replaced by its decompressed form. Every command prints
the package header first.

## Installation

```
pip install .
```

Install the `test` extra to run the tests with pytest:

```
pip install .[test]
pytest
```

## Commands

Print the header of a package:

```
upktools upk-header Startup.upk
```

List every exported object by its full name (`Class Outer.Name`):

```
upktools list Startup.upk
```

Print the name table and write it, one name per line, to a file (default
`names_table.txt`):

```
upktools names Startup.upk names.txt
```

Extract the objects whose full name or output path contains a string
(default output directory `output`):

```
upktools extract Startup.upk MainMenu out
```

Extract every object:

```
upktools extractall Startup.upk out
```

Extraction writes a metadata file `<output>/<package>.json` holding the
package name, the package path, the header and the name, export and import
tables. Each object goes to `<output>/<package>/<Outer>/<Name>.<Class>`:

- `ObjectReferencer` objects are written as `<Name>.json`, a JSON listing of
  their properties.
- `SwfMovie` and `GFxMovieInfo` objects have the bytes of their `RawData`
  property saved as `<Name>.gfx`, next to a `<Name>.json` listing of the
  properties. If `RawData` holds no bytes the object is written unchanged.
- Other objects are written as raw bytes.

Print the properties of an extracted object, using the metadata file written
during extraction:

```
upktools elements out/Startup.json out/Startup/SomeObject.ObjectReferencer
```

On a read or format error a command prints `Error: ...` to standard error and
exits with status 1.

## Library use

```python
import io

from upktools.cli import load_package
from upktools.package import list_full_obj_paths, parse_upk

data, header = load_package("Startup.upk")
pkg = parse_upk(io.BytesIO(data), header)
for name in list_full_obj_paths(pkg):
    print(name)
```

The modules:

- `upktools.header`: `read_header`, `UpkHeader` (with `write`, `describe`,
  `to_dict`), `header_from_dict`, `PackageFlags`.
- `upktools.package`: `parse_upk`, `UPKPak` and its naming methods,
  `ue_name_to_path`, `list_full_obj_paths`, `package_from_dict`.
- `upktools.props`: `parse_property`, `get_obj_props`, `Property`,
  `PropertyValue`.
- `upktools.strings`: `read_name`, `read_string`.
- `upktools.decompress`: `upk_decompress`, `decompress_chunk`,
  `lzo1x_decompress`, `CompressionMethod`.
- `upktools.extract`: `extract_by_name`, `write_extracted_file`.
- `upktools.patch`: dataclasses describing script and object patches
  (`PatchData` and friends).

## Limitations

- Only LZO compression is supported; packages compressed with zlib or LZX
  raise an error.
- There is no command to pack objects back into a package or rebuild one
  from extracted files.
- The `upktools.patch` classes only hold patch descriptions; nothing in the
  package applies them.