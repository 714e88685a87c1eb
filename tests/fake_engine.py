"""Stand-in for the ffmpeg binary used by the test suite.

Invoked as `python fake_engine.py [options...] <output_path>`. Unknown
tokens are ignored, like the literal arguments a real command would carry.

Options:
    --duration T      print `duration=T` on stdout (progress channel)
    --banner T        print an ffmpeg-style `Duration: T, start: ...` line on stderr
    --progress T      print `out_time=T` on stdout (repeatable)
    --log TEXT        print TEXT on stderr (repeatable)
    --sleep S         sleep S seconds before finishing
    --copy-input P    write the contents of P to the output
    --echo-args       write the received argv as JSON to the output
    --no-output       do not create the output file
    --exit N          exit status (default 0)
"""

import argparse
import json
import shutil
import sys
import time


def main(argv):
    output_path = argv[-1]
    parser = argparse.ArgumentParser(add_help=False, allow_abbrev=False)
    parser.add_argument("--duration")
    parser.add_argument("--banner")
    parser.add_argument("--progress", action="append", default=[])
    parser.add_argument("--log", action="append", default=[])
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--copy-input")
    parser.add_argument("--echo-args", action="store_true")
    parser.add_argument("--no-output", action="store_true")
    parser.add_argument("--exit", type=int, default=0)
    options, _ = parser.parse_known_args(argv[:-1])

    if options.banner:
        print(f"  Duration: {options.banner}, start: 0.000000, bitrate: 1000 kb/s",
              file=sys.stderr, flush=True)
    if options.duration:
        print(f"duration={options.duration}", flush=True)
    for line in options.log:
        print(line, file=sys.stderr, flush=True)
    for position in options.progress:
        print(f"out_time={position}", flush=True)
        print("progress=continue", flush=True)

    if options.sleep:
        time.sleep(options.sleep)

    if not options.no_output:
        if options.copy_input:
            shutil.copyfile(options.copy_input, output_path)
        elif options.echo_args:
            with open(output_path, "w") as fh:
                json.dump(argv, fh)
        else:
            with open(output_path, "w") as fh:
                fh.write("fake output")

    print("progress=end", flush=True)
    return options.exit


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
